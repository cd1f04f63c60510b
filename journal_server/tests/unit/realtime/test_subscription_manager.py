"""
Tests for topic subscriptions: idempotence, garbage collection and the auth gate.
"""

import asyncio

import pytest

from journal_server.error_types import ErrorType
from journal_server.realtime.envelope import build_event
from journal_server.realtime.exceptions import (
    ConnectionNotFoundError,
    MalformedPayloadError,
    NotAuthenticatedError,
)


class TestSubscribe:
    """Test SubscriptionManager.subscribe."""

    @pytest.mark.asyncio
    async def test_subscribe_is_idempotent(self, container, connect):
        cid, _ = await connect("u1")

        assert await container.subscriptions.subscribe(cid, "journal:42") is True
        assert await container.subscriptions.subscribe(cid, "journal:42") is False

        assert container.subscriptions.subscribers_of("journal:42") == {cid}
        assert container.subscriptions.subscriber_count("journal:42") == 1
        assert container.subscriptions.topics_of(cid) == {"journal:42"}

    @pytest.mark.asyncio
    async def test_unauthenticated_connection_cannot_subscribe(self, container, connect):
        cid, _ = await connect()

        with pytest.raises(NotAuthenticatedError):
            await container.subscriptions.subscribe(cid, "journal:42")

        assert not container.subscriptions.has_topic("journal:42")
        assert container.subscriptions.topics_of(cid) == set()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("topic_id", ["journal:", "chat:1", "journal", ""])
    async def test_invalid_topic_rejected(self, container, connect, topic_id):
        cid, _ = await connect("u1")

        with pytest.raises(MalformedPayloadError) as exc_info:
            await container.subscriptions.subscribe(cid, topic_id)

        assert exc_info.value.error_type == ErrorType.INVALID_FORMAT

    @pytest.mark.asyncio
    async def test_subscribers_of_returns_copy(self, container, connect):
        cid, _ = await connect("u1")
        await container.subscriptions.subscribe(cid, "journal:42")

        snapshot = container.subscriptions.subscribers_of("journal:42")
        snapshot.add("intruder")

        assert container.subscriptions.subscribers_of("journal:42") == {cid}


class TestUnsubscribe:
    """Test SubscriptionManager.unsubscribe and topic garbage collection."""

    @pytest.mark.asyncio
    async def test_unsubscribe_missing_is_noop(self, container, connect):
        cid, _ = await connect("u1")
        assert await container.subscriptions.unsubscribe(cid, "journal:42") is False
        assert await container.subscriptions.unsubscribe("missing", "journal:42") is False

    @pytest.mark.asyncio
    async def test_last_unsubscribe_removes_topic(self, container, connect):
        first, _ = await connect("u1")
        second, _ = await connect("u2")
        await container.subscriptions.subscribe(first, "journal:42")
        await container.subscriptions.subscribe(second, "journal:42")

        assert await container.subscriptions.unsubscribe(first, "journal:42") is True
        assert container.subscriptions.has_topic("journal:42")

        await container.subscriptions.unsubscribe(second, "journal:42")
        assert not container.subscriptions.has_topic("journal:42")
        assert container.subscriptions.topic_count() == 0

    @pytest.mark.asyncio
    async def test_emptied_listener_fires_once_per_topic(self, container, connect):
        emptied = []
        container.subscriptions.add_topic_emptied_listener(emptied.append)
        cid, _ = await connect("u1")
        await container.subscriptions.subscribe(cid, "journal:1")
        await container.subscriptions.subscribe(cid, "game:c1")

        await container.registry.remove(cid)

        assert sorted(emptied) == ["game:c1", "journal:1"]


class TestConnectionRemoval:
    """Removing a connection detaches it from every topic."""

    @pytest.mark.asyncio
    async def test_removal_detaches_all_topics(self, container, connect):
        leaving, _ = await connect("u1")
        staying, _ = await connect("u2")
        for topic_id in ("journal:1", "journal:2", "game:c1"):
            await container.subscriptions.subscribe(leaving, topic_id)
        await container.subscriptions.subscribe(staying, "journal:1")

        await container.registry.remove(leaving)

        assert container.subscriptions.subscribers_of("journal:1") == {staying}
        assert not container.subscriptions.has_topic("journal:2")
        assert not container.subscriptions.has_topic("game:c1")

    @pytest.mark.asyncio
    async def test_online_users_in_topic(self, container, connect):
        phone, _ = await connect("u1")
        tablet, _ = await connect("u1")
        partner, _ = await connect("u2")
        for cid in (phone, tablet, partner):
            await container.subscriptions.subscribe(cid, "journal:42")

        assert container.subscriptions.online_users_in("journal:42") == {"u1", "u2"}

        await container.registry.remove(partner)
        assert container.subscriptions.online_users_in("journal:42") == {"u1"}

    @pytest.mark.asyncio
    async def test_stats_group_by_kind(self, container, connect):
        cid, _ = await connect("u1")
        await container.subscriptions.subscribe(cid, "journal:1")
        await container.subscriptions.subscribe(cid, "journal:2")
        await container.subscriptions.subscribe(cid, "game:c1")

        stats = container.subscriptions.get_stats()

        assert stats["total_topics"] == 3
        assert stats["total_subscriptions"] == 3
        assert stats["topics_by_kind"] == {"journal": 2, "game": 1}


class TestConcurrentMutation:
    """Subscribe, remove and broadcast running as concurrent tasks."""

    @pytest.mark.asyncio
    async def test_remove_racing_subscribes_leaves_no_dangling_subscriber(self, container, connect):
        cid, _ = await connect("u1")
        topics = [f"journal:{n}" for n in range(1, 21)]

        operations = [container.subscriptions.subscribe(cid, topic_id) for topic_id in topics]
        operations.insert(10, container.registry.remove(cid))
        results = await asyncio.gather(*operations, return_exceptions=True)

        failures = [result for result in results if isinstance(result, BaseException)]
        assert failures
        assert all(isinstance(failure, ConnectionNotFoundError) for failure in failures)
        assert container.subscriptions.topic_count() == 0
        for topic_id in topics:
            assert cid not in container.subscriptions.subscribers_of(topic_id)
        assert container.subscriptions.topics_of(cid) == set()

    @pytest.mark.asyncio
    async def test_unsubscribe_and_subscribe_interleaved(self, container, connect):
        cid, _ = await connect("u1")
        await container.subscriptions.subscribe(cid, "journal:42")

        await asyncio.gather(
            *[
                container.subscriptions.unsubscribe(cid, "journal:42")
                if n % 2 == 0
                else container.subscriptions.subscribe(cid, "journal:42")
                for n in range(20)
            ]
        )

        # The last operation was a subscribe
        assert container.subscriptions.subscribers_of("journal:42") == {cid}
        assert container.subscriptions.topics_of(cid) == {"journal:42"}

    @pytest.mark.asyncio
    async def test_no_delivery_after_removal_during_broadcasts(self, container, connect):
        leaving, leaving_transport = await connect("u1")
        staying, staying_transport = await connect("u2")
        for cid in (leaving, staying):
            await container.subscriptions.subscribe(cid, "journal:42")

        operations = [
            container.broadcaster.broadcast_to_topic("journal:42", build_event("new_message", seq=seq))
            for seq in range(20)
        ]
        operations.insert(10, container.registry.remove(leaving))
        await asyncio.gather(*operations)

        assert [event["seq"] for event in staying_transport.of_type("new_message")] == list(range(20))
        leaving_seqs = [event["seq"] for event in leaving_transport.of_type("new_message")]
        assert all(seq < 10 for seq in leaving_seqs)

        leaving_transport.clear()
        delivered = await container.broadcaster.broadcast_to_topic("journal:42", build_event("new_message", seq=20))
        assert delivered == 1
        assert leaving_transport.frames == []
        assert container.subscriptions.subscribers_of("journal:42") == {staying}
