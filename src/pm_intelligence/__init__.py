"""pm-intelligence.

Project-management intelligence for an external AI orchestrator:
- a shared expiring cache for expensive lookups
- bulk triage / bulk workflow moves with per-item failure isolation
- per-operation execution metrics
"""

__version__ = "0.1.0"

from pm_intelligence.config import PMSettings

__all__ = ["__version__", "PMSettings"]
