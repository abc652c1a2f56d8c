"""
HTTP health check state and service metadata.
"""

import datetime
import os
import platform
import socket
import threading
import time
from typing import Any

from chat_orchestrator.platform.constants import SERVICE_NAME, SERVICE_VERSION

__all__ = ["HealthCheck", "MetadataManager", "metadata"]


class HealthCheck:
    """Thread-safe health check state manager.

    Uses a threading.Event to manage health check state, allowing
    the service to be gracefully drained during shutdown.
    """

    _health_check_enabled = threading.Event()

    @staticmethod
    def enable() -> None:
        """Enable health checks (mark service as healthy)."""
        HealthCheck._health_check_enabled.set()

    @staticmethod
    def disable() -> None:
        """Disable health checks (mark service as unhealthy for graceful shutdown)."""
        HealthCheck._health_check_enabled.clear()

    @staticmethod
    def status() -> bool:
        return HealthCheck._health_check_enabled.is_set()


class MetadataManager:
    """
    Static service metadata served by /info. One is created on import; the
    lifespan adds runtime facts (registered tools, providers) to ``metadata``.
    """

    # keys to read from the environment
    ENV_INFO_KEYS = [
        "BUILD_DATE",
        "BUILD_URL",
        "GIT_COMMIT",
        "GIT_COMMIT_DATE",
        "IMAGE_NAME",
        "PYTHON_VERSION",
    ]

    def __init__(self) -> None:
        self._started_at = datetime.datetime.now(tz=datetime.UTC).isoformat()
        self._started_ts = time.monotonic()

        metadata: dict[str, Any] = {key.lower(): os.environ.get(key) for key in self.ENV_INFO_KEYS}
        metadata["service_name"] = os.environ.get("SERVICE_NAME") or SERVICE_NAME
        metadata["build_version"] = os.environ.get("BUILD_VERSION") or SERVICE_VERSION
        metadata["hostname"] = socket.gethostname()
        metadata["os_version"] = platform.platform()
        self.metadata = metadata

    def info(self) -> dict[str, Any]:
        """
        Return metadata about the container and some basic stats
        """
        return {
            **self.metadata,
            "started": self._started_at,
            "uptime_seconds": round(time.monotonic() - self._started_ts, 3),
        }


metadata = MetadataManager()
