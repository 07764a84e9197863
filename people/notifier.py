"""Background subscription that keeps the local cache in step with the store."""

from __future__ import annotations

import logging
import sqlite3
import threading
from typing import Optional

from pydantic import ValidationError

from .cache import LocalCache
from .config import DEFAULT_POLL_INTERVAL
from .database import Database, Notification
from .schemas import decode_person

logger = logging.getLogger("people.notifier")


class ChangeSubscriber:
    """Applies committed records received on a change channel to a :class:`LocalCache`.

    Messages are applied one at a time on a single thread, in the order the
    channel delivers them. A payload that cannot be decoded is logged and
    dropped. If the store connection is lost the subscription is abandoned;
    reads then fall back to the store and writes stay correct because the
    store enforces nickname uniqueness on its own.
    """

    def __init__(
        self,
        database: Database,
        cache: LocalCache,
        *,
        channel: Optional[str] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        backfill: bool = False,
    ) -> None:
        self._database = database
        self._cache = cache
        self._channel = channel or database.channel
        self._poll_interval = poll_interval
        self._backfill = backfill
        self._stop = threading.Event()
        self._subscribed = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._applied = 0
        self._dropped = 0

    @property
    def channel(self) -> str:
        return self._channel

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def applied(self) -> int:
        return self._applied

    @property
    def dropped(self) -> int:
        return self._dropped

    def start(self, *, wait: float | None = 5.0) -> None:
        """Start the subscription thread and wait until it is listening."""

        if self.running:
            return
        self._stop.clear()
        self._subscribed.clear()
        self._thread = threading.Thread(
            target=self._run,
            name=f"people-subscriber-{self._channel}",
            daemon=True,
        )
        self._thread.start()
        if wait is not None:
            self._subscribed.wait(wait)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        try:
            listener = self._database.listen(self._channel, from_start=self._backfill)
        except sqlite3.Error:
            logger.exception("Unable to subscribe to channel %s; serving reads from the store", self._channel)
            self._subscribed.set()
            return

        logger.info("Subscribed to channel %s", self._channel)
        self._subscribed.set()
        try:
            while not self._stop.is_set():
                try:
                    messages = listener.receive()
                except sqlite3.Error:
                    logger.exception(
                        "Lost connection while listening on %s; abandoning subscription",
                        self._channel,
                    )
                    return
                for message in messages:
                    self._handle(message)
                if not messages:
                    self._stop.wait(self._poll_interval)
        finally:
            listener.close()
            logger.info("Subscription to channel %s stopped", self._channel)

    def _handle(self, message: Notification) -> None:
        try:
            person = decode_person(message.payload)
        except ValidationError as exc:
            self._dropped += 1
            logger.warning(
                "Dropping malformed message %s on channel %s: %s",
                message.id,
                message.channel,
                exc.errors(include_url=False),
            )
            return
        self._cache.apply(person)
        self._applied += 1
        logger.debug("Cached person %s (nick=%s)", person.id, person.nick)


__all__ = ["ChangeSubscriber"]
