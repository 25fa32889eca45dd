"""Tests for callpulse.services.changes — pub/sub change feed."""
import json
from unittest.mock import MagicMock

from callpulse.services.cache import QueryCache
from callpulse.services.changes import (
    ChangeListener, publish_change, parse_event, channel_for, SUBSCRIBED_TABLES,
)


def _message(data, channel='changes:analyses', type_='message'):
    return {'type': type_, 'channel': channel, 'data': data}


class TestPublishChange:

    def test_publishes_json_on_table_channel(self, mock_redis):
        publish_change('recordings', 'INSERT', 'u1', 'rec-1')
        channel, payload = mock_redis.published[0]
        assert channel == 'changes:recordings'
        assert json.loads(payload) == {
            'table': 'recordings', 'event': 'INSERT', 'user_id': 'u1', 'id': 'rec-1',
        }

    def test_publish_failure_is_swallowed(self, mock_redis):
        mock_redis.publish.side_effect = ConnectionError('down')
        publish_change('recordings', 'INSERT', 'u1')  # does not raise


class TestParseEvent:

    def test_valid_message(self):
        event = parse_event(_message(json.dumps({'table': 'analyses', 'user_id': 'u1'})))
        assert event == {'table': 'analyses', 'user_id': 'u1'}

    def test_table_falls_back_to_channel(self):
        event = parse_event(_message(json.dumps({'user_id': 'u1'}), channel='changes:recordings'))
        assert event['table'] == 'recordings'

    def test_subscribe_confirmation_ignored(self):
        assert parse_event(_message(1, type_='subscribe')) is None

    def test_malformed_json_ignored(self):
        assert parse_event(_message('{nope')) is None

    def test_event_without_user_ignored(self):
        assert parse_event(_message(json.dumps({'table': 'analyses'}))) is None

    def test_none_message(self):
        assert parse_event(None) is None


class TestChangeListener:

    def test_handle_message_invalidates_cache(self, mock_redis):
        cache = QueryCache(mock_redis)
        cache.set('analyses', 'u1', ['stale'])
        cache.set('recordings', 'u1', ['stale'])
        listener = ChangeListener(mock_redis, cache=cache)

        keys = listener.handle_message(_message(json.dumps(
            {'table': 'analyses', 'event': 'UPDATE', 'user_id': 'u1', 'id': 'a1'})))

        assert 'cache:analyses:u1' in keys
        assert cache.get('analyses', 'u1') is None
        assert cache.get('recordings', 'u1') is None

    def test_bad_message_changes_nothing(self, mock_redis):
        cache = QueryCache(mock_redis)
        cache.set('analyses', 'u1', ['kept'])
        listener = ChangeListener(mock_redis, cache=cache)

        assert listener.handle_message(_message('garbage')) == set()
        assert cache.get('analyses', 'u1') == ['kept']

    def test_run_subscribes_and_applies_each_message(self, mock_redis):
        pubsub = MagicMock()
        pubsub.listen.return_value = iter([
            _message(json.dumps({'table': 'recordings', 'event': 'INSERT', 'user_id': 'u1'}),
                     channel='changes:recordings'),
            _message('garbage'),
            _message(json.dumps({'table': 'analyses', 'event': 'UPDATE', 'user_id': 'u1'})),
        ])
        mock_redis.pubsub.return_value = pubsub
        cache = MagicMock()
        listener = ChangeListener(mock_redis, cache=cache)

        listener.run()

        pubsub.subscribe.assert_called_once_with(*[channel_for(t) for t in SUBSCRIBED_TABLES])
        assert cache.apply_change.call_count == 2
        pubsub.close.assert_called_once()

    def test_run_survives_a_failing_invalidation(self, mock_redis):
        pubsub = MagicMock()
        pubsub.listen.return_value = iter([
            _message(json.dumps({'table': 'analyses', 'user_id': 'u1'})),
            _message(json.dumps({'table': 'analyses', 'user_id': 'u2'})),
        ])
        mock_redis.pubsub.return_value = pubsub
        cache = MagicMock()
        cache.apply_change.side_effect = [RuntimeError('boom'), {'cache:analyses:u2'}]

        ChangeListener(mock_redis, cache=cache).run()

        assert cache.apply_change.call_count == 2

    def test_stopped_listener_applies_nothing(self, mock_redis):
        pubsub = MagicMock()
        mock_redis.pubsub.return_value = pubsub
        listener = ChangeListener(mock_redis, cache=MagicMock())
        listener.stop()
        pubsub.listen.return_value = iter([
            _message(json.dumps({'table': 'analyses', 'user_id': 'u1'})),
        ])

        listener.run()

        listener.cache.apply_change.assert_not_called()
        pubsub.close.assert_called_once()
