"""
Live View Projector: keeps every consumer's picture of a room current

Subscribes to the change feed for one room (rooms, players, rounds,
clues, votes) and, on any notification, rebuilds the whole RoomView
from the store and hands it to every consumer.

- Notifications only say "something changed"; the view is always
  re-fetched, so a late or out-of-order notification is harmless.
- The current round is re-derived as the highest round_number.
- Consumers receive full snapshots and must treat them as idempotent
  re-renders.
- stop() must be called (or use `with`) to release the subscriptions.
"""
import logging
import threading
from typing import Callable, List, Optional
from uuid import UUID

from core.change_feed import ChangeEvent, ChangeFeed, Subscription
from schemas import RoomView
from services.view_service import build_room_view

logger = logging.getLogger(__name__)

Consumer = Callable[[RoomView], None]

WATCHED_TABLES = ("rooms", "players", "rounds", "clues", "votes")


class LiveViewProjector:

    def __init__(self, room_id: UUID, session_factory, feed: ChangeFeed):
        self.room_id = room_id
        self.session_factory = session_factory
        self.feed = feed
        self.latest: Optional[RoomView] = None
        self._consumers: List[Consumer] = []
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    # ============ Consumers ============

    def add_consumer(self, consumer: Consumer) -> None:
        with self._lock:
            self._consumers.append(consumer)

    def remove_consumer(self, consumer: Consumer) -> None:
        with self._lock:
            if consumer in self._consumers:
                self._consumers.remove(consumer)

    # ============ Lifecycle ============

    @property
    def is_running(self) -> bool:
        return bool(self._subscriptions)

    def start(self) -> RoomView:
        """Subscribe to the room's tables and publish the initial view"""
        if not self._subscriptions:
            for table in WATCHED_TABLES:
                self._subscriptions.append(
                    self.feed.subscribe(table, self._matches_room, self._on_change)
                )
            logger.info(f"Live view started for room {self.room_id}")
        return self.refresh()

    def stop(self) -> None:
        """Release every subscription (safe to call twice)"""
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            self.feed.unsubscribe(subscription)
        if subscriptions:
            logger.info(f"Live view stopped for room {self.room_id}")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    # ============ Projection ============

    def refresh(self) -> RoomView:
        """Re-read the room from the store and push the view to consumers"""
        db = self.session_factory()
        try:
            view = build_room_view(db, self.room_id)
        finally:
            db.close()

        self.latest = view
        with self._lock:
            consumers = list(self._consumers)
        for consumer in consumers:
            consumer(view)
        return view

    def _matches_room(self, change: ChangeEvent) -> bool:
        if change.table == "rooms":
            return change.row_id == self.room_id
        return change.record.get("room_id") == self.room_id

    def _on_change(self, change: ChangeEvent) -> None:
        logger.debug(
            f"Room {self.room_id}: {change.table} {change.kind.value} {change.row_id}, refreshing"
        )
        self.refresh()
