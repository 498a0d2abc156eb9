"""Snapshot feed for stand changes.

Consumers register a callback for one organization and receive the complete,
ordered list of stand snapshots each time a change to that organization's
stands is committed.  ``subscribe`` returns the function that unregisters the
callback.
"""

import logging
import threading

logger = logging.getLogger(__name__)


class StandFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers = {}

    def subscribe(self, organization_id, callback):
        with self._lock:
            self._subscribers.setdefault(organization_id, []).append(callback)

        def unsubscribe():
            with self._lock:
                callbacks = self._subscribers.get(organization_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(organization_id, None)

        return unsubscribe

    def has_subscribers(self, organization_id):
        with self._lock:
            return bool(self._subscribers.get(organization_id))

    def publish(self, organization_id, snapshot):
        """Deliver ``snapshot`` to every callback, in subscription order."""
        with self._lock:
            callbacks = list(self._subscribers.get(organization_id, []))
        for callback in callbacks:
            try:
                callback(snapshot)
            except Exception:
                logger.exception(
                    "Stand snapshot subscriber failed for organization %s",
                    organization_id,
                )
        return len(callbacks)


stand_feed = StandFeed()
