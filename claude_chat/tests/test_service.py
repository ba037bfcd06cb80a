from claude_chat.api.service import create_chat_controller, run_chat
from claude_chat.domain.models import ChatCompletionResponse
from claude_chat.domain.result import RequestResult
from claude_chat.providers import ChatApiClient, StreamingChatApiClient, create_clients
from claude_chat.session.controller import SessionState


class ConfigStub:
    anthropic_api_key = "sk-ant-test-key"
    default_model = "claude-3-haiku"
    max_tokens = 256
    temperature = 0.2
    top_p = 1.0
    system_prompt = None
    use_streaming = True
    max_history_messages = 50
    history_trim_count = 30


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
        return RequestResult.success(ChatCompletionResponse(content=[{"type": "text", "text": self.reply}]))

    def create_chat_completion(self, request):
        return self.create_chat_completion_result(request).get_value_or_default(None)


class FakeStreamingApi:
    def __init__(self, deltas=()):
        self.deltas = list(deltas)
        self.closed = 0

    def create_chat_completion_stream(self, request, api_key, on_text_delta, on_error=None, on_complete=None):
        for delta in self.deltas:
            on_text_delta(delta)
        if on_complete:
            on_complete()

    def cancel_stream(self):
        pass

    def close(self):
        self.closed += 1


def test_create_chat_controller_uses_config_defaults():
    streaming = FakeStreamingApi()
    ctrl = create_chat_controller(api=FakeApi(), streaming_api=streaming, cfg=ConfigStub())
    assert ctrl.model == "claude-3-haiku-20240307"
    assert ctrl.state is SessionState.IDLE
    ctrl.send_user_message("hi")
    # use_streaming 取自配置，流式接口没有增量时不会提交回复
    assert [m.content for m in ctrl.history] == ["hi"]
    ctrl.dispose()
    assert streaming.closed == 1


def test_run_chat_full():
    api = FakeApi(reply="Hello!")
    out = run_chat("hi", api=api, streaming_api=FakeStreamingApi(), cfg=ConfigStub())
    assert out == {"user_message": "hi", "assistant_message": "Hello!", "error": None, "stream_updates": 0}
    assert api.requests[0].max_tokens == 256
    assert api.requests[0].temperature == 0.2


def test_run_chat_streaming():
    streaming = FakeStreamingApi(["Hel", "lo"])
    out = run_chat("hi", use_streaming=True, api=FakeApi(), streaming_api=streaming, cfg=ConfigStub())
    assert out["assistant_message"] == "Hello"
    assert out["stream_updates"] == 2
    assert out["error"] is None
    assert streaming.closed == 1


def test_run_chat_reports_error():
    out = run_chat("hi", api=FakeApi(error="Request failed (HTTP 500): boom"), streaming_api=FakeStreamingApi(), cfg=ConfigStub())
    assert out["assistant_message"] is None
    assert out["error"] == "Request failed (HTTP 500): boom"


def test_create_clients_share_config():
    cfg = ConfigStub()
    api, streaming = create_clients(cfg)
    assert isinstance(api, ChatApiClient) and isinstance(streaming, StreamingChatApiClient)
    assert api.settings is cfg
    assert api.api_key == "sk-ant-test-key"
    assert streaming.is_streaming is False
