# tests/test_poller.py
"""Tests for conversation previews and the active-conversation poller."""

from __future__ import annotations

import asyncio

import pytest

from chatchain.schemas.conversation import Conversation, Group
from chatchain.services.conversations import ConversationAggregator, summarize_messages
from chatchain.services.poller import ConversationPoller, PollState
from chatchain.services.sync_engine import MessageSyncEngine
from tests.helpers import make_message

TEAM = Group(id="g1", name="Team", members=["alice", "bob", "carol"], createdBy="bob", createdAt=1)


def test_summarize_messages_counts_unread_for_viewer() -> None:
    conversation = Conversation.direct("bob")
    messages = [
        make_message("m1", sender="alice", timestamp=1),
        make_message("m2", sender="bob", receiver="alice", timestamp=2),
        make_message("m3", sender="bob", receiver="alice", timestamp=3, read_by=["bob", "alice"]),
    ]

    summary = summarize_messages(conversation, messages, "alice")

    assert summary.last_message.id == "m3"
    assert summary.unread_count == 1
    assert conversation.unread_count == 0


def test_summarize_messages_empty_conversation() -> None:
    summary = summarize_messages(Conversation.group(TEAM, "alice"), [], "alice")

    assert summary.last_message is None
    assert summary.unread_count == 0
    assert summary.participants == ["bob", "carol"]


@pytest.mark.asyncio
async def test_aggregator_skips_hidden_and_broken_conversations(
    sync_engine: MessageSyncEngine,
) -> None:
    hidden = await sync_engine.send("bob", "first", receiver="alice")
    await sync_engine.send("bob", "second", receiver="alice")
    sync_engine.hide(hidden.id, "alice")
    broken = Conversation(id="conv_broken", type="group")

    direct, skipped = await ConversationAggregator(sync_engine).summarize(
        [Conversation.direct("bob"), broken], "alice"
    )

    assert direct.unread_count == 1
    assert direct.last_message.content == "second"
    assert skipped == broken


@pytest.mark.asyncio
async def test_refresh_applies_only_when_count_changes(sync_engine: MessageSyncEngine) -> None:
    conversation = Conversation.direct("bob")
    applied: list[list[str]] = []
    poller = ConversationPoller(
        sync_engine,
        "alice",
        [conversation],
        on_messages=lambda _conversation, messages: applied.append([m.id for m in messages]),
    )
    first = await sync_engine.send("bob", "hi", receiver="alice")

    assert await poller.refresh(conversation) is True
    assert await poller.refresh(conversation) is False

    second = await sync_engine.send("alice", "hey", receiver="bob")

    assert await poller.refresh(conversation) is True
    assert applied == [[first.id], [first.id, second.id]]
    assert poller.state is PollState.LOADED


@pytest.mark.asyncio
async def test_refresh_marks_loaded_messages_read(sync_engine: MessageSyncEngine) -> None:
    conversation = Conversation.direct("bob")
    message = await sync_engine.send("bob", "hi", receiver="alice")
    poller = ConversationPoller(sync_engine, "alice", [conversation])

    await poller.refresh(conversation)

    assert poller.messages[0].has_reader("alice")
    assert poller.conversations[0].unread_count == 0
    [remote] = await sync_engine.ledger.query(conversation.key_for("alice"))
    assert remote.read_by == ["bob", "alice"]
    assert sync_engine.cache.get(message.id).has_reader("alice")


@pytest.mark.asyncio
async def test_refresh_can_leave_messages_unread(sync_engine: MessageSyncEngine) -> None:
    conversation = Conversation.direct("bob")
    await sync_engine.send("bob", "hi", receiver="alice")
    poller = ConversationPoller(sync_engine, "alice", [conversation], mark_read_on_load=False)

    await poller.refresh(conversation)

    assert not poller.messages[0].has_reader("alice")
    assert poller.conversations[0].unread_count == 1


@pytest.mark.asyncio
async def test_refresh_updates_every_preview(sync_engine: MessageSyncEngine) -> None:
    with_bob = Conversation.direct("bob")
    with_carol = Conversation.direct("carol")
    team = Conversation.group(TEAM, "alice")
    await sync_engine.send("carol", "one", receiver="alice")
    await sync_engine.send("carol", "two", receiver="alice")
    await sync_engine.send("bob", "standup?", group_id="g1")
    previews: list[list[Conversation]] = []
    poller = ConversationPoller(
        sync_engine, "alice", [with_bob, with_carol, team], on_conversations=previews.append
    )

    await poller.refresh(with_bob)

    [latest] = previews
    by_id = {conversation.id: conversation for conversation in latest}
    assert [conversation.id for conversation in latest] == [with_bob.id, with_carol.id, team.id]
    assert by_id[with_bob.id].last_message is None
    assert by_id[with_carol.id].unread_count == 2
    assert by_id[with_carol.id].last_message.content == "two"
    assert by_id[team.id].unread_count == 1
    assert by_id[team.id].last_message.content == "standup?"


@pytest.mark.asyncio
async def test_select_switches_active_conversation(sync_engine: MessageSyncEngine) -> None:
    with_bob = Conversation.direct("bob")
    with_carol = Conversation.direct("carol")
    await sync_engine.send("bob", "from bob", receiver="alice")
    await sync_engine.send("carol", "from carol", receiver="alice")
    loaded: asyncio.Queue[tuple[str, list[str]]] = asyncio.Queue()

    async def on_messages(conversation: Conversation, messages: list) -> None:
        await loaded.put((conversation.id, [m.content for m in messages]))

    poller = ConversationPoller(
        sync_engine, "alice", [with_bob, with_carol], interval=0.01, on_messages=on_messages
    )

    await poller.select(with_bob)
    assert await asyncio.wait_for(loaded.get(), timeout=5) == (with_bob.id, ["from bob"])

    await poller.select(with_carol)
    assert await asyncio.wait_for(loaded.get(), timeout=5) == (with_carol.id, ["from carol"])
    assert poller.active == with_carol

    await poller.close()
    assert poller.state is PollState.IDLE
    assert poller.active is None
    assert poller.messages == []


@pytest.mark.asyncio
async def test_stale_refresh_is_dropped(
    sync_engine: MessageSyncEngine, monkeypatch: pytest.MonkeyPatch
) -> None:
    conversation = Conversation.direct("bob")
    await sync_engine.send("bob", "hi", receiver="alice")
    release = asyncio.Event()
    fetch = sync_engine.fetch

    async def slow_fetch(*args, **kwargs):
        await release.wait()
        return await fetch(*args, **kwargs)

    monkeypatch.setattr(sync_engine, "fetch", slow_fetch)
    applied: list[object] = []
    poller = ConversationPoller(
        sync_engine, "alice", [conversation], on_messages=lambda *args: applied.append(args)
    )

    pending = asyncio.create_task(poller.refresh(conversation))
    await asyncio.sleep(0)
    await poller.deselect()
    release.set()

    assert await pending is False
    assert applied == []
    assert poller.messages == []
    assert poller.state is PollState.IDLE


@pytest.mark.asyncio
async def test_polling_survives_callback_errors(sync_engine: MessageSyncEngine) -> None:
    conversation = Conversation.direct("bob")
    calls = 0
    third_call = asyncio.Event()

    def broken_callback(_conversations: list[Conversation]) -> None:
        nonlocal calls
        calls += 1
        if calls >= 3:
            third_call.set()
        raise RuntimeError("renderer crashed")

    poller = ConversationPoller(
        sync_engine, "alice", [conversation], interval=0.01, on_conversations=broken_callback
    )

    await poller.select(conversation)
    await asyncio.wait_for(third_call.wait(), timeout=5)
    await poller.deselect()

    assert poller.state is PollState.IDLE


@pytest.mark.asyncio
async def test_deselect_stops_fetching(sync_engine: MessageSyncEngine, mocker) -> None:
    conversation = Conversation.direct("bob")
    fetch = sync_engine.fetch
    second_fetch = asyncio.Event()
    fetch_calls = 0

    async def counting_fetch(*args, **kwargs):
        nonlocal fetch_calls
        fetch_calls += 1
        if fetch_calls >= 2:
            second_fetch.set()
        return await fetch(*args, **kwargs)

    mocker.patch.object(sync_engine, "fetch", side_effect=counting_fetch)
    poller = ConversationPoller(sync_engine, "alice", [conversation], interval=0.01)

    await poller.select(conversation)
    await asyncio.wait_for(second_fetch.wait(), timeout=5)
    await poller.deselect()
    calls_at_deselect = fetch_calls
    await asyncio.sleep(0.05)

    assert fetch_calls == calls_at_deselect
    assert poller.state is PollState.IDLE
    assert poller.active is None


@pytest.mark.asyncio
async def test_stale_previews_are_not_applied(sync_engine: MessageSyncEngine, mocker) -> None:
    with_bob = Conversation.direct("bob")
    with_carol = Conversation.direct("carol")
    await sync_engine.send("carol", "unread", receiver="alice")
    previews: list[list[Conversation]] = []
    poller = ConversationPoller(
        sync_engine, "alice", [with_bob, with_carol], on_conversations=previews.append
    )
    summarize = poller.aggregator.summarize
    entered = asyncio.Event()
    release = asyncio.Event()

    async def slow_summarize(*args, **kwargs):
        entered.set()
        await release.wait()
        return await summarize(*args, **kwargs)

    mocker.patch.object(poller.aggregator, "summarize", side_effect=slow_summarize)

    pending = asyncio.create_task(poller.refresh(with_bob))
    await asyncio.wait_for(entered.wait(), timeout=5)
    await poller.deselect()
    release.set()
    await pending

    assert previews == []
    assert poller.conversations == [with_bob, with_carol]
    assert poller.state is PollState.IDLE


@pytest.mark.asyncio
async def test_set_conversations_replaces_previewed_list(sync_engine: MessageSyncEngine) -> None:
    with_bob = Conversation.direct("bob")
    with_carol = Conversation.direct("carol")
    await sync_engine.send("carol", "hello", receiver="alice")
    previews: list[list[Conversation]] = []
    poller = ConversationPoller(sync_engine, "alice", on_conversations=previews.append)

    poller.set_conversations([with_bob, with_carol])
    await poller.refresh(with_bob)

    [latest] = previews
    assert [conversation.id for conversation in latest] == [with_bob.id, with_carol.id]
    assert latest[1].unread_count == 1
