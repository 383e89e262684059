import dataclasses

import pytest

from plot_agent.domain.conversation import ConversationStore, PlotHistory
from plot_agent.domain.models import ChatMessage


def test_store_starts_with_system_message():
    store = ConversationStore("sys")
    snap = store.snapshot()
    assert len(snap) == 1
    assert snap[0] == ChatMessage(role="system", content="sys")


def test_append_and_reset():
    store = ConversationStore("sys")
    store.append(ChatMessage(role="user", content="hi"))
    store.append(ChatMessage(role="assistant", content="{}"))
    assert [m.role for m in store.snapshot()] == ["system", "user", "assistant"]
    assert store.last().content == "{}"

    store.reset()
    assert store.snapshot() == (store.system_message,)
    assert len(store) == 1


def test_second_system_message_rejected():
    store = ConversationStore("sys")
    with pytest.raises(ValueError):
        store.append(ChatMessage(role="system", content="again"))


def test_snapshot_is_detached_and_immutable():
    store = ConversationStore("sys")
    snap = store.snapshot()
    store.append(ChatMessage(role="user", content="later"))
    assert len(snap) == 1
    assert isinstance(snap, tuple)
    with pytest.raises(dataclasses.FrozenInstanceError):
        snap[0].content = "changed"


def test_plot_history_is_append_only():
    history = PlotHistory()
    first = history.append("[1,2]", "bar chart", {"data": [{"type": "bar"}]})
    history.append(None, "make it red", {"data": [{"type": "bar", "marker": {"color": "red"}}]})

    assert len(history) == 2
    assert history[0] is first
    assert history[1].raw_input == ""
    assert [e.instruction for e in history.entries()] == ["bar chart", "make it red"]
