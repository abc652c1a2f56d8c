"""Bugsnag error reporting integration.

This module provides initialization for Bugsnag error tracking,
automatically capturing and reporting ERROR-level log entries such as
failed orchestration runs.
"""

import logging

import bugsnag
from bugsnag.handlers import BugsnagHandler

from chat_orchestrator.platform.constants import SERVICE_VERSION


def initialize_bugsnag(api_key: str, release_stage: str) -> bool:
    """Initialize Bugsnag error reporting.

    Configures Bugsnag with the provided API key and attaches a handler
    to the root logger to automatically report ERROR-level log entries.

    Args:
        api_key: Bugsnag project API key
        release_stage: Environment identifier (e.g., "production", "development", "local")

    Returns:
        True if reporting was enabled

    Note:
        No-op when release_stage is "local" or no API key is configured.
    """
    if release_stage == "local" or not api_key:
        return False
    bugsnag.configure(
        api_key=api_key,
        release_stage=release_stage,
        app_version=SERVICE_VERSION,
        auto_notify=True,
    )
    handler = BugsnagHandler()
    handler.setLevel(logging.ERROR)
    logging.getLogger().addHandler(handler)
    return True
