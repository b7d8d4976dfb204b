"""
Unit tests for the in-process push transport.
"""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent))

from weddingdesk.core.errors import TransportError
from weddingdesk.core.models import Notification
from weddingdesk.notifications.transport import InProcessPushTransport


def note(id, user_id="u1"):
    return Notification(id=id, user_id=user_id, message=f"n{id}")


class TestInProcessPushTransport:
    """Tests for subscribe/publish/drop."""

    def test_publish_reaches_only_that_user(self):
        transport = InProcessPushTransport()
        seen_u1, seen_u2 = [], []
        transport.subscribe("u1", seen_u1.append)
        transport.subscribe("u2", seen_u2.append)

        assert transport.publish(note(1, "u1")) == 1

        assert [n.id for n in seen_u1] == [1]
        assert seen_u2 == []

    def test_multiple_subscribers_per_user(self):
        transport = InProcessPushTransport()
        first, second = [], []
        transport.subscribe("u1", first.append)
        transport.subscribe("u1", second.append)

        assert transport.publish(note(1)) == 2
        assert transport.subscriber_count("u1") == 2

    def test_unsubscribe_is_idempotent(self):
        transport = InProcessPushTransport()
        seen = []
        unsubscribe = transport.subscribe("u1", seen.append)
        unsubscribe()
        unsubscribe()

        assert transport.publish(note(1)) == 0
        assert seen == []
        assert transport.subscribed_users() == []

    def test_failing_callback_does_not_block_others(self):
        transport = InProcessPushTransport()
        seen = []

        def broken(notification):
            raise RuntimeError("boom")

        transport.subscribe("u1", broken)
        transport.subscribe("u1", seen.append)

        assert transport.publish(note(1)) == 1
        assert [n.id for n in seen] == [1]

    def test_drop_is_silent(self):
        transport = InProcessPushTransport()
        seen = []
        transport.subscribe("u1", seen.append)
        transport.subscribe("u2", seen.append)

        transport.drop("u1")
        assert transport.subscribed_users() == ["u2"]

        transport.drop()
        assert transport.subscriber_count() == 0
        transport.publish(note(1))
        assert seen == []

    def test_closed_transport_rejects_subscriptions(self):
        transport = InProcessPushTransport()
        transport.close()
        with pytest.raises(TransportError):
            transport.subscribe("u1", lambda n: None)
