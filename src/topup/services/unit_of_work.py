"""Commit helper with bounded retries for lock contention."""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ..core.config import get_settings
from .errors import ConflictingUpdate

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_atomic(session: Session, work: Callable[[], T], *, attempts: int | None = None) -> T:
    """Run ``work`` as one unit of work and commit it.

    Lost compare-and-set races and database lock errors roll the session back
    and re-run ``work`` from scratch, up to ``attempts`` times. Any other error
    rolls back and propagates unchanged.
    """

    attempts = attempts or get_settings().max_retries
    for attempt in range(1, attempts + 1):
        try:
            result = work()
            session.commit()
            return result
        except (ConflictingUpdate, OperationalError) as exc:
            session.rollback()
            logger.warning("unit of work conflict (attempt %d/%d): %s", attempt, attempts, exc)
            if attempt == attempts:
                if isinstance(exc, ConflictingUpdate):
                    raise
                raise ConflictingUpdate(
                    "The record is being updated by another request. Please retry.",
                    reason="lock_contention",
                ) from exc
        except Exception:
            session.rollback()
            raise
    raise ConflictingUpdate("Unit of work did not run.", reason="lock_contention")
