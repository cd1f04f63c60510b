"""
Tests for topic and user fan-out, and for dead transport handling.
"""

import pytest

from journal_server.realtime.envelope import build_event
from journal_server.realtime.messaging import ConnectionMessageSender
from journal_server.realtime.messaging.connection_sender import CLOSE_CODE_SERVER_ERROR


class TestBroadcastToTopic:
    """Test MessageBroadcaster.broadcast_to_topic."""

    @pytest.mark.asyncio
    async def test_reaches_only_subscribers(self, container, connect):
        inside, inside_transport = await connect("u1")
        _, outside_transport = await connect("u2")
        await container.subscriptions.subscribe(inside, "journal:42")

        delivered = await container.broadcaster.broadcast_to_topic("journal:42", build_event("new_message", id="m1"))

        assert delivered == 1
        assert inside_transport.of_type("new_message")[0]["id"] == "m1"
        assert outside_transport.events == []

    @pytest.mark.asyncio
    async def test_topics_are_isolated(self, container, connect):
        first, first_transport = await connect("u1")
        second, second_transport = await connect("u2")
        await container.subscriptions.subscribe(first, "journal:1")
        await container.subscriptions.subscribe(second, "journal:2")

        await container.broadcaster.broadcast_to_topic("journal:1", build_event("new_message"))

        assert len(first_transport.of_type("new_message")) == 1
        assert second_transport.of_type("new_message") == []

    @pytest.mark.asyncio
    async def test_exclusion_skips_sender_only(self, container, connect):
        sender, sender_transport = await connect("u1")
        sender_tablet, tablet_transport = await connect("u1")
        partner, partner_transport = await connect("u2")
        for cid in (sender, sender_tablet, partner):
            await container.subscriptions.subscribe(cid, "journal:42")

        delivered = await container.broadcaster.broadcast_excluding("journal:42", build_event("user_typing"), sender)

        assert delivered == 2
        assert sender_transport.events == []
        assert len(tablet_transport.events) == 1
        assert len(partner_transport.events) == 1

    @pytest.mark.asyncio
    async def test_empty_topic_delivers_nothing(self, container):
        assert await container.broadcaster.broadcast_to_topic("journal:404", build_event("new_message")) == 0

    @pytest.mark.asyncio
    async def test_failing_transport_is_removed_without_affecting_others(self, container, connect, fake_transport):
        healthy, healthy_transport = await connect("u1")
        broken, broken_transport = await connect("u2", fake_transport(fail=True))
        await container.subscriptions.subscribe(healthy, "journal:42")
        await container.subscriptions.subscribe(broken, "journal:42")

        delivered = await container.broadcaster.broadcast_to_topic("journal:42", build_event("new_message"))

        assert delivered == 1
        assert len(healthy_transport.events) == 1
        assert not container.registry.contains(broken)
        assert container.subscriptions.subscribers_of("journal:42") == {healthy}
        assert broken_transport.closed
        assert broken_transport.close_code == CLOSE_CODE_SERVER_ERROR
        assert container.broadcaster.get_stats()["failed"] == 1

    @pytest.mark.asyncio
    async def test_removed_connection_receives_nothing(self, container, connect):
        cid, transport = await connect("u1")
        await container.subscriptions.subscribe(cid, "journal:42")
        await container.registry.remove(cid)

        delivered = await container.broadcaster.broadcast_to_topic("journal:42", build_event("new_message"))

        assert delivered == 0
        assert transport.events == []


class TestBroadcastToUser:
    """Test MessageBroadcaster.broadcast_to_user."""

    @pytest.mark.asyncio
    async def test_reaches_every_device_of_the_user_only(self, container, connect):
        _, phone = await connect("u1")
        _, tablet = await connect("u1")
        _, other = await connect("u2")

        delivered = await container.broadcaster.broadcast_to_user("u1", build_event("notification", title="Hi"))

        assert delivered == 2
        assert phone.of_type("notification")[0]["title"] == "Hi"
        assert tablet.of_type("notification")[0]["title"] == "Hi"
        assert other.events == []

    @pytest.mark.asyncio
    async def test_offline_user_gets_zero(self, container):
        assert await container.broadcaster.broadcast_to_user("nobody", build_event("notification")) == 0


class TestConnectionMessageSender:
    """Test single-connection delivery."""

    @pytest.mark.asyncio
    async def test_preserves_order(self, container, connect):
        cid, transport = await connect("u1")

        for index in range(5):
            await container.sender.send(cid, build_event("tick", index=index))

        assert [event["index"] for event in transport.events] == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_missing_connection_is_skipped(self, container):
        assert await container.sender.send("missing", build_event("tick")) is False
        assert container.sender.get_stats()["skipped"] == 1

    @pytest.mark.asyncio
    async def test_send_timeout_drops_connection(self, container, connect, fake_transport):
        sender = ConnectionMessageSender(container.registry, send_timeout=0.05)
        cid, transport = await connect("u1", fake_transport(hang=True))

        assert await sender.send(cid, build_event("tick")) is False

        assert not container.registry.contains(cid)
        assert transport.close_code == CLOSE_CODE_SERVER_ERROR
        assert sender.get_stats() == {"delivered": 0, "failed": 1, "skipped": 0}
