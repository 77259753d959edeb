"""
Change feed: push notifications for committed row changes

The room store is shared by every client, so clients find out about each
other's writes through this feed rather than through shared memory.

How it works:
1. bind() hooks SQLAlchemy session events on a sessionmaker
2. after_flush collects inserted / updated / deleted ORM rows
3. after_commit publishes them to matching subscribers
4. a rollback discards whatever was collected

Subscribers get a ChangeEvent that identifies the row. They must
re-fetch state instead of trusting the record snapshot, because
delivery order across writers is not guaranteed.

Bulk statements (query(...).delete()) bypass the unit of work and
produce no events.
"""
import enum
import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import event, inspect

logger = logging.getLogger(__name__)

_PENDING_KEY = "change_feed.pending"


class ChangeKind(str, enum.Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    kind: ChangeKind
    row_id: Any
    record: Dict[str, Any] = field(default_factory=dict)


Predicate = Callable[[ChangeEvent], bool]
Callback = Callable[[ChangeEvent], None]


@dataclass(frozen=True)
class Subscription:
    """Handle returned by subscribe(); pass it back to unsubscribe()"""
    id: int
    table: str
    predicate: Optional[Predicate]
    callback: Callback


def _snapshot(obj) -> Dict[str, Any]:
    # Read loaded state only, so no lazy load fires inside a flush
    state = inspect(obj)
    loaded = state.dict
    return {
        attr.key: loaded.get(attr.key)
        for attr in state.mapper.column_attrs
    }


def _to_event(obj, kind: ChangeKind) -> Optional[ChangeEvent]:
    table = getattr(obj, "__tablename__", None)
    if table is None:
        return None
    record = _snapshot(obj)
    return ChangeEvent(table=table, kind=kind, row_id=record.get("id"), record=record)


class ChangeFeed:
    """In-process notification channel for one room store"""

    def __init__(self):
        self._subscriptions: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    # ============ Subscription API ============

    def subscribe(
        self,
        table: str,
        predicate: Optional[Predicate],
        callback: Callback
    ) -> Subscription:
        """
        Register a callback for changes on one table

        Args:
            table: table name, e.g. "rounds"
            predicate: optional filter; None matches every row
            callback: called with the ChangeEvent after commit

        Returns:
            Subscription handle (must be unsubscribed to stop delivery)
        """
        with self._lock:
            subscription = Subscription(
                id=next(self._ids),
                table=table,
                predicate=predicate,
                callback=callback
            )
            self._subscriptions[subscription.id] = subscription
        logger.debug(f"Subscription {subscription.id} registered on {table}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            removed = self._subscriptions.pop(subscription.id, None)
        if removed is not None:
            logger.debug(f"Subscription {subscription.id} removed from {subscription.table}")

    @property
    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, events: List[ChangeEvent]) -> None:
        """Deliver events to every matching subscriber"""
        with self._lock:
            subscriptions = list(self._subscriptions.values())

        for change in events:
            for subscription in subscriptions:
                if subscription.table != change.table:
                    continue
                if subscription.predicate is not None and not subscription.predicate(change):
                    continue
                try:
                    subscription.callback(change)
                except Exception as e:
                    # One broken consumer must not break the writer or other consumers
                    logger.error(
                        f"Subscriber {subscription.id} failed on {change.table} "
                        f"{change.kind.value} {change.row_id}: {e}",
                        exc_info=True
                    )

    # ============ SQLAlchemy wiring ============

    def bind(self, session_factory) -> None:
        """Hook the feed onto a sessionmaker (or Session class)"""
        event.listen(session_factory, "after_flush", self._after_flush)
        event.listen(session_factory, "after_commit", self._after_commit)
        event.listen(session_factory, "after_soft_rollback", self._after_soft_rollback)

    def unbind(self, session_factory) -> None:
        event.remove(session_factory, "after_flush", self._after_flush)
        event.remove(session_factory, "after_commit", self._after_commit)
        event.remove(session_factory, "after_soft_rollback", self._after_soft_rollback)

    def _after_flush(self, session, flush_context):
        pending = session.info.setdefault(_PENDING_KEY, [])
        for obj in session.new:
            change = _to_event(obj, ChangeKind.INSERT)
            if change is not None:
                pending.append(change)
        for obj in session.dirty:
            if not session.is_modified(obj, include_collections=False):
                continue
            change = _to_event(obj, ChangeKind.UPDATE)
            if change is not None:
                pending.append(change)
        for obj in session.deleted:
            change = _to_event(obj, ChangeKind.DELETE)
            if change is not None:
                pending.append(change)

    def _after_commit(self, session):
        pending = session.info.pop(_PENDING_KEY, [])
        if pending:
            self.publish(pending)

    def _after_soft_rollback(self, session, previous_transaction):
        session.info.pop(_PENDING_KEY, None)
