"""
Degrade-on-failure policy applied by callers of the stores.

A failed backend call is logged and replaced with fixture data so the staff
member gets a usable (if stale) screen instead of an error.
"""
import logging
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def or_fixture(result, fallback: Callable[[], T], what: str) -> T:
    if result.is_ok:
        return result.value
    logger.info("Serving fixture data for %s after backend failure: %s", what, result.error)
    return fallback()
