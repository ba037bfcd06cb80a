import pytest

from claude_chat.domain.exceptions import StreamCancelled
from claude_chat.domain.models import ChatCompletionResponse, ChatRole
from claude_chat.domain.result import RequestResult
from claude_chat.providers.base import TransportResponse
from claude_chat.providers.claude_client import ChatApiClient
from claude_chat.providers.claude_streaming import StreamingChatApiClient
from claude_chat.session.controller import ChatSessionController, SessionState


class ConfigStub:
    anthropic_api_key = "sk-ant-test-key"
    claude_base_url = "https://api.anthropic.com/v1"
    api_version = "2023-06-01"
    default_model = "claude-3-5-sonnet"
    max_tokens = 1000
    max_tokens_fallback = 500
    temperature = 0.7
    top_p = 1.0
    system_prompt = None
    max_history_messages = 50
    history_trim_count = 30
    http_timeout = 1.0


class FakeApi:
    api_key = "sk-ant-test-key"

    def __init__(self, reply="ok", error=None):
        self.reply = reply
        self.error = error
        self.requests = []

    def create_chat_completion_result(self, request):
        self.requests.append(request)
        if self.error:
            return RequestResult.failure(self.error, status_code=500)
        content = [{"type": "text", "text": self.reply}] if self.reply else []
        return RequestResult.success(ChatCompletionResponse(content=content))

    def create_chat_completion(self, request):
        return self.create_chat_completion_result(request).get_value_or_default(None)


class FakeStreamingApi:
    def __init__(self):
        self.requests = []
        self.cancelled = 0
        self.closed = 0

    def create_chat_completion_stream(self, request, api_key, on_text_delta, on_error=None, on_complete=None):
        self.requests.append(request)
        if on_complete:
            on_complete()

    def cancel_stream(self):
        self.cancelled += 1

    def close(self):
        self.closed += 1


class FakeTransport:
    def __init__(self, chunks=(), status_code=200, error=None):
        self.chunks = [c.encode("utf-8") for c in chunks]
        self.status_code = status_code
        self.error = error
        self.aborted = False
        self.closed = 0

    def post_stream(self, url, headers, payload, on_chunk):
        for chunk in self.chunks:
            if self.aborted:
                raise StreamCancelled()
            on_chunk(chunk)
        return TransportResponse(status_code=self.status_code, error=self.error)

    def abort(self):
        self.aborted = True

    def close(self):
        self.closed += 1


def _delta(text):
    return 'data: {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "%s"}}\n' % text


class Recorder:
    def __init__(self):
        self.messages = []
        self.updates = []
        self.errors = []

    def on_message(self, message, is_user):
        self.messages.append((message, is_user))

    def on_update(self, text):
        self.updates.append(text)

    def on_error(self, message):
        self.errors.append(message)


def _controller(api=None, streaming_api=None, config=None, use_streaming=False, rec=None):
    rec = rec or Recorder()
    ctrl = ChatSessionController(
        api or FakeApi(),
        streaming_api=streaming_api or FakeStreamingApi(),
        config=config or ConfigStub(),
        on_message=rec.on_message,
        on_streaming_update=rec.on_update,
        on_error=rec.on_error,
        use_streaming=use_streaming,
    )
    return ctrl, rec


def _streaming_api(transport, config=None):
    return StreamingChatApiClient(config or ConfigStub(), transport_factory=lambda: transport)


def _contents(ctrl):
    return [(m.role, m.content) for m in ctrl.history]


def test_blank_input_is_ignored():
    api = FakeApi()
    ctrl, rec = _controller(api=api)
    ctrl.send_user_message("")
    ctrl.send_user_message("   \n\t")
    ctrl.send_user_message(None)
    assert ctrl.history == ()
    assert rec.messages == [] and rec.errors == [] and rec.updates == []
    assert api.requests == []
    assert ctrl.state is SessionState.IDLE


def test_streaming_turn_accumulates_and_commits():
    transport = FakeTransport([_delta("Hel"), _delta("lo"), "data: [DONE]\n"])
    ctrl, rec = _controller(streaming_api=_streaming_api(transport), use_streaming=True)

    ctrl.send_user_message("hi")

    assert rec.updates == ["Hel", "Hello"]
    assert _contents(ctrl) == [(ChatRole.USER, "hi"), (ChatRole.ASSISTANT, "Hello")]
    assert len(rec.messages) == 2
    assert rec.messages[0][0].content == "hi" and rec.messages[0][1] is True
    placeholder, is_user = rec.messages[1]
    assert placeholder.is_assistant and placeholder.content == "" and is_user is False
    assert rec.errors == []
    assert ctrl.state is SessionState.IDLE
    assert transport.closed == 1


def test_streaming_request_carries_history_snapshot():
    streaming = FakeStreamingApi()
    ctrl, _ = _controller(streaming_api=streaming, use_streaming=True)
    ctrl.send_user_message("hi")
    request = streaming.requests[0]
    assert request.stream is True
    assert request.model == "claude-3-5-sonnet-20241022"
    assert [m.content for m in request.messages] == ["hi"]


def test_streaming_error_is_reported_and_nothing_committed():
    transport = FakeTransport(status_code=529, error="overloaded")
    ctrl, rec = _controller(streaming_api=_streaming_api(transport), use_streaming=True)

    ctrl.send_user_message("hi")

    assert _contents(ctrl) == [(ChatRole.USER, "hi")]
    assert len(rec.errors) == 1 and "529" in rec.errors[0]


def test_cancel_after_first_delta_commits_nothing():
    transport = FakeTransport([_delta("Hel"), _delta("lo"), "data: [DONE]\n"])
    rec = Recorder()

    def on_update(text):
        rec.updates.append(text)
        ctrl.cancel_streaming()

    ctrl = ChatSessionController(
        FakeApi(),
        streaming_api=_streaming_api(transport),
        config=ConfigStub(),
        on_streaming_update=on_update,
        on_error=rec.on_error,
        use_streaming=True,
    )

    ctrl.send_user_message("hi")

    assert rec.updates == ["Hel"]
    assert _contents(ctrl) == [(ChatRole.USER, "hi")]
    assert rec.errors == []
    assert ctrl.state is SessionState.IDLE


def test_full_turn_commits_and_notifies():
    api = FakeApi(reply="Hello there")
    ctrl, rec = _controller(api=api)

    ctrl.send_user_message("hi")

    assert _contents(ctrl) == [(ChatRole.USER, "hi"), (ChatRole.ASSISTANT, "Hello there")]
    assert [(m.content, is_user) for m, is_user in rec.messages] == [("hi", True), ("Hello there", False)]
    assert api.requests[0].stream is False
    assert api.requests[0].max_tokens == 1000


def test_full_turn_http_500_reports_error(monkeypatch):
    class Resp:
        status_code = 500
        text = "internal error"
        reason_phrase = "Internal Server Error"

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
    ctrl, rec = _controller(api=ChatApiClient(ConfigStub()))

    ctrl.send_user_message("hi")

    assert _contents(ctrl) == [(ChatRole.USER, "hi")]
    assert len(rec.errors) == 1
    assert "500" in rec.errors[0]


def test_full_turn_without_content_commits_nothing():
    ctrl, rec = _controller(api=FakeApi(reply=""))
    ctrl.send_user_message("hi")
    assert _contents(ctrl) == [(ChatRole.USER, "hi")]
    assert rec.errors == []


def test_history_is_trimmed_fifo():
    class Small(ConfigStub):
        max_history_messages = 4
        history_trim_count = 2

    api = FakeApi(reply="a")
    ctrl, _ = _controller(api=api, config=Small())
    for text in ["u1", "u2", "u3"]:
        ctrl.send_user_message(text)

    assert [m.content for m in ctrl.history] == ["a", "u3", "a"]
    # 第三轮请求基于裁剪后的历史
    assert [m.content for m in api.requests[-1].messages] == ["a", "u3"]


def test_trim_count_larger_than_limit_halves_history():
    class Odd(ConfigStub):
        max_history_messages = 6
        history_trim_count = 10

    ctrl, _ = _controller(api=FakeApi(reply="a"), config=Odd())
    for text in ["u1", "u2", "u3", "u4"]:
        ctrl.send_user_message(text)

    assert [m.content for m in ctrl.history] == ["u3", "a", "u4", "a"]


def test_system_prompt_is_sent_but_not_stored():
    class WithPrompt(ConfigStub):
        system_prompt = "Be brief."

    api = FakeApi()
    ctrl, _ = _controller(api=api, config=WithPrompt())
    ctrl.send_user_message("hi")

    messages = api.requests[0].messages
    assert messages[0].role is ChatRole.SYSTEM and messages[0].content == "Be brief."
    assert all(not m.is_system for m in ctrl.history)


def test_send_while_busy_is_rejected():
    api = FakeApi()
    rec = Recorder()

    def on_message(message, is_user):
        rec.messages.append((message, is_user))
        if is_user and message.content == "first":
            ctrl.send_user_message("second")

    ctrl = ChatSessionController(
        api,
        streaming_api=FakeStreamingApi(),
        config=ConfigStub(),
        on_message=on_message,
        on_error=rec.on_error,
    )
    ctrl.send_user_message("first")

    assert rec.errors == ["A response is already in progress."]
    assert [m.content for m in ctrl.history] == ["first", "ok"]
    assert len(api.requests) == 1


def test_clear_history():
    ctrl, _ = _controller()
    ctrl.send_user_message("hi")
    assert len(ctrl.history) == 2
    ctrl.clear_history()
    assert ctrl.history == ()
    ctrl.send_user_message("again")
    assert [m.content for m in ctrl.history] == ["again", "ok"]


def test_dispose_is_idempotent_and_final():
    streaming = FakeStreamingApi()
    api = FakeApi()
    ctrl, rec = _controller(api=api, streaming_api=streaming)
    ctrl.send_user_message("hi")

    ctrl.dispose()
    ctrl.dispose()

    assert streaming.closed == 1
    assert ctrl.history == ()
    assert ctrl.state is SessionState.DISPOSED
    ctrl.send_user_message("after")
    assert ctrl.history == ()
    assert len(api.requests) == 1


def test_context_manager_disposes():
    streaming = FakeStreamingApi()
    with ChatSessionController(FakeApi(), streaming_api=streaming, config=ConfigStub()) as ctrl:
        ctrl.send_user_message("hi")
        assert len(ctrl.history) == 2
    assert ctrl.state is SessionState.DISPOSED
    assert streaming.closed == 1


def test_cancel_when_idle_is_harmless():
    streaming = FakeStreamingApi()
    ctrl, rec = _controller(streaming_api=streaming)
    ctrl.cancel_streaming()
    assert streaming.cancelled == 1
    assert rec.errors == []
    assert ctrl.state is SessionState.IDLE


def test_model_name_is_resolved():
    ctrl = ChatSessionController(FakeApi(), streaming_api=FakeStreamingApi(), config=ConfigStub(), model_name="claude-3-haiku")
    assert ctrl.model == "claude-3-haiku-20240307"


def test_missing_api_is_rejected():
    with pytest.raises(ValueError):
        ChatSessionController(None, streaming_api=FakeStreamingApi(), config=ConfigStub())


def test_cancel_from_placeholder_callback_commits_nothing():
    transport = FakeTransport([_delta("hi"), "data: [DONE]\n"])
    rec = Recorder()

    def on_message(message, is_user):
        rec.messages.append((message, is_user))
        if not is_user:
            ctrl.cancel_streaming()

    ctrl = ChatSessionController(
        FakeApi(),
        streaming_api=_streaming_api(transport),
        config=ConfigStub(),
        on_message=on_message,
        on_streaming_update=rec.on_update,
        on_error=rec.on_error,
        use_streaming=True,
    )

    ctrl.send_user_message("hello")

    assert _contents(ctrl) == [(ChatRole.USER, "hello")]
    assert rec.updates == []
    assert rec.errors == []
    assert ctrl.state is SessionState.IDLE


def test_cancel_before_stream_starts_skips_request():
    streaming = FakeStreamingApi()
    pending_cancel = [True]

    def on_message(message, is_user):
        if is_user and pending_cancel:
            pending_cancel.pop()
            ctrl.cancel_streaming()

    ctrl = ChatSessionController(
        FakeApi(), streaming_api=streaming, config=ConfigStub(), on_message=on_message, use_streaming=True
    )

    ctrl.send_user_message("hello")

    assert streaming.requests == []
    assert [m.content for m in ctrl.history] == ["hello"]

    # 取消只作用于当前回合
    ctrl.send_user_message("again")
    assert len(streaming.requests) == 1
