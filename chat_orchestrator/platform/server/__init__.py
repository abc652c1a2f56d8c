"""HTTP server infrastructure module.

This module provides the FastAPI application factory (``server.app``) and
HTTP-related utilities:
- Route handlers
- FastAPI dependencies
- Health checks
"""

from chat_orchestrator.platform.server.health import HealthCheck

__all__ = [
    "HealthCheck",
]
