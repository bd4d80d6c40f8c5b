"""FastAPI server adapter for pm-intelligence.

Design intent:
- Keep business logic in `pm_intelligence.*`
- Keep server-specific concerns (routing, request parsing) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from pm_intelligence.server.app import create_app
