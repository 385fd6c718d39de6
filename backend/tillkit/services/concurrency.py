# Overview: Retry helper for transient database failures during checkout writes.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


logger = logging.getLogger(__name__)

# "database is locked" while another terminal commits, or a row changed underneath
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def run_with_retry(func, *, label: str = "checkout write", attempts: int = 3, backoff_base: float = 0.1, sleep=time.sleep):
    """
    Run one independently committed checkout step, retrying transient failures.

    The session is rolled back before every retry, so `func` must rebuild
    whatever it adds. Delays double per attempt (0.1s, 0.2s, ...). Any other
    error propagates on the first attempt.

    NOTE: No row is ever locked here. Stock updates from different terminals
    stay last-write-wins.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts:
                logger.error("%s failed after %d attempts: %s", label, attempts, exc)
                raise
            delay = backoff_base * (2 ** (attempt - 1))
            logger.warning(
                "%s hit %s (attempt %d/%d), retrying in %.2fs",
                label, type(exc).__name__, attempt, attempts, delay,
            )
            sleep(delay)
