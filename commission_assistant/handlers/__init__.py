"""
Intent handler registration.

Each handler module registers its functions with the router on import.
"""

import logging

logger = logging.getLogger("commission-assistant.handlers")


def register_all_handlers() -> None:
    """Import all handler modules to trigger registration."""
    from . import listing, creation, members, suggestions, pv_text  # noqa: F401

    logger.info("All intent handlers registered")
