"""
Concurrency control helpers

Every client runs the same transition logic against the shared store,
so there is no single writer to serialize anything. Races are settled
by the store itself:

- Optimistic locking: Room and Round carry a version_id_col. An UPDATE
  against a stale version matches zero rows and SQLAlchemy raises
  StaleDataError. The loser treats the transition as already done.
- Uniqueness constraints: a second clue / vote for the same
  (round, player) pair raises IntegrityError, which is reported as
  DuplicateSubmission and then absorbed as a no-op.
"""
import logging
from typing import Callable, Optional, Tuple, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from core.exceptions import DuplicateSubmission

logger = logging.getLogger(__name__)

T = TypeVar("T")


def guarded(step: Callable[..., T], *args, **kwargs) -> Tuple[bool, Optional[T]]:
    """
    Run a @transactional step that another client may have already performed

    The step must check the current status before writing and flush
    its versioned transition first. If a concurrent writer got there
    first, the flush fails, the transaction is rolled back by
    @transactional and the step counts as a redundant no-op.

    Returns:
        (applied, result): applied=False means somebody else won the race

    Example:
        applied, result = guarded(self._resolve, round_id)
        if not applied:
            return None
    """
    try:
        return True, step(*args, **kwargs)
    except StaleDataError as e:
        logger.info(f"{step.__name__} lost an optimistic race, treating as no-op: {e}")
        return False, None
    except IntegrityError as e:
        # e.g. the next round was already created by another resolver
        logger.info(f"{step.__name__} hit a uniqueness race, treating as no-op: {e.orig}")
        return False, None


def insert_once(db: Session, row, description: str):
    """
    Insert a row protected by a uniqueness constraint

    Flushes immediately so that a constraint violation surfaces here.
    The session is rolled back on conflict, so call this before any
    other write in the same transaction.

    Raises:
        DuplicateSubmission: the constraint already holds a row
    """
    db.add(row)
    try:
        db.flush()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateSubmission(f"{description} already exists") from e
    return row
