"""
Change notifications — Redis pub/sub fan-out of row changes.

Every mutation made through the store publishes a small JSON event on
`changes:<table>`. The external analysis pipeline publishes on the same
channels when it updates an analysis in place. A ChangeListener turns each
event into cache invalidations via keys_for_change().

Events:
    {"table": "analyses", "event": "UPDATE", "user_id": "...", "id": "..."}

`event` is INSERT, UPDATE or DELETE, or COMPLETED when an analysis first
reaches the completed status.
"""
import json
import logging
import threading

from callpulse import extensions
from callpulse.services.cache import (
    QueryCache, RECORDINGS, ANALYSES, METRICS_AGGREGATES,
)

logger = logging.getLogger('services.changes')

CHANNEL_PREFIX = 'changes'

# Tables whose cached lists are kept fresh by subscription
SUBSCRIBED_TABLES = (RECORDINGS, ANALYSES, METRICS_AGGREGATES)


def channel_for(table):
    return f'{CHANNEL_PREFIX}:{table}'


def publish_change(table, event, user_id, row_id=None):
    """Publish a change event. Publishing never fails the caller's mutation."""
    payload = {'table': table, 'event': event, 'user_id': user_id, 'id': row_id}
    try:
        extensions.redis_client.publish(channel_for(table), json.dumps(payload))
    except Exception as e:
        logger.warning("Failed to publish %s %s change: %s", table, event, e)


def parse_event(message):
    """
    Decode a pub/sub message into an event dict, or None if it is not one.

    Subscribe confirmations and malformed payloads return None.
    """
    if not message or message.get('type') != 'message':
        return None
    try:
        event = json.loads(message.get('data') or '')
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed change payload on %s", message.get('channel'))
        return None
    if not isinstance(event, dict) or not event.get('user_id'):
        logger.warning("Ignoring change event without user on %s", message.get('channel'))
        return None
    if not event.get('table'):
        channel = message.get('channel') or ''
        event['table'] = channel.split(':', 1)[-1]
    return event


class ChangeListener:
    """
    Subscribes to change channels and invalidates the query cache.

    Events for the same collection arriving in a burst each drop the same
    keys; the collection is refetched once, on the next read.
    """

    def __init__(self, redis_client, cache=None, tables=SUBSCRIBED_TABLES):
        self.redis = redis_client
        self.cache = cache or QueryCache(redis_client)
        self.tables = tables
        self._pubsub = None
        self._thread = None
        self._stopped = threading.Event()

    def handle_message(self, message):
        """Apply one pub/sub message. Returns the invalidated key set."""
        event = parse_event(message)
        if event is None:
            return set()
        return self.cache.apply_change(event)

    def run(self):
        self._pubsub = self.redis.pubsub(ignore_subscribe_messages=True)
        self._pubsub.subscribe(*[channel_for(t) for t in self.tables])
        logger.info("Change listener subscribed to %s", ', '.join(self.tables))
        try:
            for message in self._pubsub.listen():
                if self._stopped.is_set():
                    break
                try:
                    self.handle_message(message)
                except Exception:
                    logger.error("Failed to apply change message", exc_info=True)
        finally:
            self._pubsub.close()

    def start(self):
        """Run the listener on a daemon thread."""
        self._thread = threading.Thread(target=self.run, name='change-listener', daemon=True)
        self._thread.start()
        return self._thread

    def stop(self):
        self._stopped.set()
        if self._pubsub is not None:
            try:
                self._pubsub.unsubscribe()
            except Exception as e:
                logger.warning("Error unsubscribing change listener: %s", e)
