"""Provider selection from settings."""

from __future__ import annotations

import logging

from ..config import Settings
from .base import DataProvider
from .mock import MockProvider
from .rest import RestSnapshotProvider


logger = logging.getLogger(__name__)


def build_provider(settings: Settings) -> DataProvider:
    """Build the configured provider. Unknown names fall back to the mock."""
    name = settings.get_provider()

    if name == "rest":
        logger.info(f"Using REST provider: {settings.rest_base_url}")
        return RestSnapshotProvider(
            settings.rest_base_url,
            timeout_seconds=settings.rest_timeout_seconds,
        )

    if name != "mock":
        logger.error(f"Invalid provider: '{name}'. Must be 'mock' or 'rest'. Defaulting to 'mock'.")

    logger.info("Using mock provider (synthetic random snapshots)")
    return MockProvider()
