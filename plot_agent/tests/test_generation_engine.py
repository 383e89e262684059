import json
import threading
import time

import pytest

from plot_agent.agents.generation_engine import (
    EngineConfig,
    GenerationEngine,
    compose_user_message,
    serialize_artifact,
)
from plot_agent.config.settings import settings as plot_settings
from plot_agent.domain.conversation import ConversationStore, PlotHistory, PlotSession
from plot_agent.domain.exceptions import RateLimitError
from plot_agent.domain.models import ChatMessage
from plot_agent.domain.results import (
    Accepted,
    CompletionReply,
    DIAGNOSTIC_PREFIX,
    ParseFailure,
    SchemaFailure,
    TransportFailure,
)
from plot_agent.providers.openai_client import OpenAIClient
from plot_agent.validation.schema_validator import SchemaValidator


RAW_DATA = '{"x": [1, 2, 3], "y": [4, 5, 6]}'
SCATTER = {
    "data": [{"x": [1, 2, 3], "y": [4, 5, 6], "type": "scatter", "mode": "markers"}],
    "layout": {"title": "Scatter"},
}
BLUE_SCATTER = {
    "data": [{"x": [1, 2, 3], "y": [4, 5, 6], "type": "scatter", "mode": "markers", "marker": {"color": "blue"}}],
    "layout": {"title": "Scatter"},
}


class FakeClient:
    """按顺序返回预设回复，并记录每次收到的消息。"""

    name = "fake"

    def __init__(self, replies):
        self._replies = list(replies)
        self.calls = []

    def chat(self, req):
        raise AssertionError("engine must use complete()")

    def complete(self, messages):
        self.calls.append(list(messages))
        reply = self._replies.pop(0)
        if isinstance(reply, TransportFailure):
            return reply
        return CompletionReply(text=reply)


@pytest.fixture(scope="module")
def validator():
    return SchemaValidator.from_file()


def _session(sid="s-test"):
    return PlotSession(id=sid, conversation=ConversationStore("sys"), history=PlotHistory())


def _engine(client, validator, max_context=20):
    return GenerationEngine(client, validator, EngineConfig(provider="fake", max_context_messages=max_context))


def test_new_plot_accepted(validator):
    client = FakeClient([json.dumps(SCATTER)])
    session = _session()
    outcome = _engine(client, validator).start_new_plot(session, RAW_DATA, "Create a scatter plot")

    assert isinstance(outcome, Accepted)
    assert outcome.artifact == SCATTER
    snap = session.conversation.snapshot()
    assert [m.role for m in snap] == ["system", "user", "assistant"]
    assert snap[1].content == f"Data: {RAW_DATA}\nInstructions: Create a scatter plot"
    assert snap[2].content == serialize_artifact(SCATTER)
    assert json.loads(snap[2].content) == SCATTER


def test_new_plot_resets_previous_context(validator):
    client = FakeClient([json.dumps(SCATTER), json.dumps(SCATTER)])
    session = _session()
    session.conversation.append(ChatMessage(role="user", content="unrelated earlier request"))
    session.conversation.append(ChatMessage(role="assistant", content="{}"))

    _engine(client, validator).start_new_plot(session, RAW_DATA, "Create a scatter plot")

    sent = client.calls[0]
    assert len(sent) == 2
    assert sent[0].role == "system"
    assert sent[1] == ChatMessage(role="user", content=compose_user_message(RAW_DATA, "Create a scatter plot"))


def test_prose_reply_is_rejected_without_assistant_turn(validator):
    raw = 'Sure, here\'s your chart: {"data": [{"type": "scatter"}]}'
    client = FakeClient([raw])
    session = _session()
    outcome = _engine(client, validator).start_new_plot(session, RAW_DATA, "Create a scatter plot")

    assert isinstance(outcome, ParseFailure)
    assert outcome.raw == raw
    assert outcome.diagnostic == DIAGNOSTIC_PREFIX + raw
    assert len(session.conversation) == 2
    assert session.conversation.last().role == "user"
    assert len(session.history) == 0


def test_schema_violation_is_rejected(validator):
    client = FakeClient([json.dumps({"layout": {"title": "no traces"}})])
    session = _session()
    outcome = _engine(client, validator).start_new_plot(session, RAW_DATA, "Create a scatter plot")

    assert isinstance(outcome, SchemaFailure)
    assert outcome.document == {"layout": {"title": "no traces"}}
    assert any("data" in e for e in outcome.errors)
    assert "no traces" in outcome.diagnostic
    assert len(session.conversation) == 2


def test_transport_failure_is_rejected(validator):
    failure = TransportFailure(message="Error during API call: status 401: invalid api key", code="API_ERROR")
    client = FakeClient([failure])
    session = _session()
    outcome = _engine(client, validator).start_new_plot(session, RAW_DATA, "Create a scatter plot")

    assert outcome is failure
    assert "invalid api key" in outcome.diagnostic
    assert len(session.conversation) == 2


def test_missing_credential_end_to_end(monkeypatch, validator):
    class NoKeySettings:
        openai_api_key = None
        openai_base_url = "https://api.openai.com/v1"
        openai_model = None
        default_model = "plot-chat"
        http_timeout = 1.0

    class Resp:
        status_code = 401
        text = "Incorrect API key provided: your-api-key-here"

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, *a, **kw):
            return Resp()

    monkeypatch.setattr("httpx.Client", Client)
    session = _session()
    engine = GenerationEngine(OpenAIClient(NoKeySettings()), validator)
    outcome = engine.start_new_plot(session, RAW_DATA, "Create a scatter plot")

    assert isinstance(outcome, TransportFailure)
    assert outcome.diagnostic.startswith(DIAGNOSTIC_PREFIX + "Error during API call:")
    assert "Incorrect API key provided" in outcome.diagnostic
    assert len(session.conversation) == 2


def test_refine_sends_full_context(validator):
    client = FakeClient([json.dumps(SCATTER), json.dumps(BLUE_SCATTER)])
    session = _session()
    engine = _engine(client, validator)
    engine.start_new_plot(session, RAW_DATA, "Create a scatter plot")
    outcome = engine.refine_plot(session, "change marker color to blue")

    assert isinstance(outcome, Accepted)
    assert outcome.artifact["data"][0]["marker"]["color"] == "blue"
    sent = client.calls[1]
    assert len(sent) == 4
    assert [m.role for m in sent] == ["system", "user", "assistant", "user"]
    assert sent[2].content == serialize_artifact(SCATTER)
    assert sent[3].content == "change marker color to blue"
    assert len(session.conversation) == 5


def test_consecutive_refinements_grow_by_two(validator):
    n = 3
    client = FakeClient([json.dumps(SCATTER)] * n)
    session = _session()
    engine = _engine(client, validator)
    instructions = [f"tweak {i}" for i in range(n)]
    for instruction in instructions:
        assert isinstance(engine.refine_plot(session, instruction), Accepted)

    snap = session.conversation.snapshot()
    assert len(snap) == 1 + 2 * n
    assert [m.content for m in snap[1::2]] == instructions
    assert all(m.role == "assistant" for m in snap[2::2])


def test_rejected_refine_keeps_previous_artifact(validator):
    client = FakeClient([json.dumps(SCATTER), "I cannot do that"])
    session = _session()
    engine = _engine(client, validator)
    engine.start_new_plot(session, RAW_DATA, "Create a scatter plot")
    outcome = engine.refine_plot(session, "make it 4D")

    assert isinstance(outcome, ParseFailure)
    assert len(session.conversation) == 4
    assert [m.role for m in session.conversation.snapshot()] == ["system", "user", "assistant", "user"]
    assert len(session.history) == 1


def test_history_records_accepted_plots(validator):
    client = FakeClient([json.dumps(SCATTER), json.dumps(BLUE_SCATTER)])
    session = _session()
    engine = _engine(client, validator)
    engine.start_new_plot(session, RAW_DATA, "Create a scatter plot")
    engine.refine_plot(session, "change marker color to blue")

    entries = session.history.entries()
    assert [e.instruction for e in entries] == ["Create a scatter plot", "change marker color to blue"]
    assert all(e.raw_input == RAW_DATA for e in entries)
    assert entries[1].artifact == BLUE_SCATTER


def test_context_window_caps_outgoing_messages(validator):
    client = FakeClient([json.dumps(SCATTER), json.dumps(BLUE_SCATTER)])
    session = _session()
    engine = _engine(client, validator, max_context=2)
    engine.start_new_plot(session, RAW_DATA, "Create a scatter plot")
    engine.refine_plot(session, "change marker color to blue")

    sent = client.calls[1]
    assert [m.role for m in sent] == ["system", "user"]
    assert sent[1].content == "change marker color to blue"
    # 存储的会话不被裁剪
    assert len(session.conversation) == 5


def test_calls_on_one_session_are_serialized(validator):
    active = []
    overlaps = []

    class SlowClient(FakeClient):
        def complete(self, messages):
            active.append(1)
            if len(active) > 1:
                overlaps.append(len(active))
            time.sleep(0.01)
            active.pop()
            return CompletionReply(text=json.dumps(SCATTER))

    session = _session()
    engine = _engine(SlowClient([]), validator)
    threads = [threading.Thread(target=engine.refine_plot, args=(session, f"t{i}")) for i in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert overlaps == []
    assert len(session.conversation) == 11


def test_deeply_nested_reply_is_a_parse_failure(validator):
    raw = "[" * 100000 + "]" * 100000
    client = FakeClient([raw])
    session = _session()
    outcome = _engine(client, validator).start_new_plot(session, RAW_DATA, "Create a scatter plot")

    assert isinstance(outcome, ParseFailure)
    assert outcome.raw == raw
    assert len(session.conversation) == 2
    assert len(session.history) == 0


class RaisingClient:
    name = "raising"

    def __init__(self, exc):
        self._exc = exc

    def complete(self, messages):
        raise self._exc


def test_client_exception_becomes_transport_failure(validator):
    session = _session()
    engine = _engine(FakeClient([json.dumps(SCATTER)]), validator)
    engine.start_new_plot(session, RAW_DATA, "Create a scatter plot")

    engine = _engine(RaisingClient(RuntimeError("boom")), validator)
    outcome = engine.refine_plot(session, "Make it blue")

    assert isinstance(outcome, TransportFailure)
    assert outcome.code == "CLIENT_ERROR"
    assert outcome.diagnostic == DIAGNOSTIC_PREFIX + "Error during API call: boom"
    assert [m.role for m in session.conversation.snapshot()] == ["system", "user", "assistant", "user"]
    assert len(session.history) == 1


def test_client_business_error_keeps_its_code(validator):
    session = _session()
    engine = _engine(RaisingClient(RateLimitError(code="RATE_LIMIT", message="slow down", http_status=429)), validator)
    outcome = engine.start_new_plot(session, RAW_DATA, "Create a scatter plot")

    assert isinstance(outcome, TransportFailure)
    assert outcome.code == "RATE_LIMIT"
    assert "slow down" in outcome.message
    assert len(session.conversation) == 2


def test_engine_config_defaults_follow_settings(monkeypatch):
    monkeypatch.setattr(plot_settings, "max_context_messages", 7)
    assert EngineConfig().max_context_messages == 7
