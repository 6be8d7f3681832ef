"""Tests for the REST history client, using an in-memory session."""

from datetime import datetime, timezone

import pytest

from tickerwisdom.chat.client import (
    AuthenticationError,
    ChannelNotFoundError,
    ChatConfigFactory,
    RateLimitError,
    RestHistoryClient,
    parse_api_message,
)
from tickerwisdom.chat.state import ChatConfig, ChatMessage

PAYLOAD = {
    "id": 111,
    "channel_id": 222,
    "author": {"id": 333, "bot": False},
    "content": "$NVDA breakout",
    "timestamp": "2024-06-03T10:00:00+00:00",
    "type": 19,
    "attachments": [{"url": "https://cdn.example.com/chart.png"}, {"filename": "no-url"}],
}


class FakeResponse:
    def __init__(self, status, body):
        self.status = status
        self._body = body

    async def json(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Replays queued (status, body) answers and records requests."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    def get(self, url, params=None, headers=None):
        self.requests.append({"url": url, "params": params, "headers": headers})
        status, body = self.responses.pop(0)
        return FakeResponse(status, body)


def make_client(responses, **overrides):
    settings = dict(token="secret", guild_id="999", retry_min_wait=0, retry_max_wait=0)
    settings.update(overrides)
    session = FakeSession(responses)
    return RestHistoryClient(ChatConfig(**settings), session=session), session


class TestParseApiMessage:

    def test_converts_payload(self):
        message = parse_api_message(PAYLOAD, default_guild_id="999")

        assert isinstance(message, ChatMessage)
        assert message.id == "111"
        assert message.channel_id == "222"
        assert message.author_id == "333"
        assert message.is_reply
        assert message.guild_id == "999"
        assert message.created_at == datetime(2024, 6, 3, 10, tzinfo=timezone.utc)
        assert message.attachment_urls == ["https://cdn.example.com/chart.png"]

    def test_null_content_becomes_empty_text(self):
        message = parse_api_message(dict(PAYLOAD, content=None, type=0))
        assert message.text == ""
        assert not message.is_reply


class TestRestHistoryClient:

    @pytest.mark.asyncio
    async def test_fetch_messages_sends_paging_params(self):
        client, session = make_client([(200, [PAYLOAD])])

        messages = await client.fetch_messages("222", limit=500, before="100")

        assert [m.id for m in messages] == ["111"]
        request = session.requests[0]
        assert request["url"] == "https://discord.com/api/v10/channels/222/messages"
        assert request["params"] == {"limit": 100, "before": "100"}
        assert request["headers"]["Authorization"] == "Bot secret"

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        client, session = make_client([(502, {}), (200, [PAYLOAD])])

        messages = await client.fetch_messages("222")

        assert len(messages) == 1
        assert client.stats["requests"] == 2
        assert client.stats["retries"] == 1

    @pytest.mark.asyncio
    async def test_rate_limit_exhausts_retries(self):
        client, session = make_client([(429, {"retry_after": 0}), (429, {"retry_after": 0})], max_retries=2)

        with pytest.raises(RateLimitError):
            await client.fetch_messages("222")
        assert len(session.requests) == 2

    @pytest.mark.asyncio
    async def test_missing_channel_is_not_retried(self):
        client, session = make_client([(404, {}), (200, [])])

        with pytest.raises(ChannelNotFoundError):
            await client.fetch_messages("222")
        assert len(session.requests) == 1

    @pytest.mark.asyncio
    async def test_rejected_token(self):
        client, _ = make_client([(401, {})])
        with pytest.raises(AuthenticationError):
            await client.fetch_messages("222")

    @pytest.mark.asyncio
    async def test_context_manager_keeps_injected_session_open(self):
        client, session = make_client([])
        async with client:
            pass
        assert not session.closed

    def test_token_is_required_without_session(self):
        with pytest.raises(AuthenticationError):
            RestHistoryClient(ChatConfig(token=None))


class TestChatConfigFactory:

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("TICKERWISDOM_BOT_TOKEN", "abc")
        monkeypatch.setenv("TICKERWISDOM_GUILD_ID", "42")
        monkeypatch.setenv("TICKERWISDOM_MAX_RETRIES", "5")

        config = ChatConfigFactory.from_environment()

        assert config.token == "abc"
        assert config.guild_id == "42"
        assert config.max_retries == 5

    def test_missing_token_raises(self, monkeypatch):
        monkeypatch.setenv("TICKERWISDOM_BOT_TOKEN", "")
        with pytest.raises(AuthenticationError):
            ChatConfigFactory.from_environment()

    def test_token_optional_when_not_required(self, monkeypatch):
        monkeypatch.setenv("TICKERWISDOM_BOT_TOKEN", "")
        assert ChatConfigFactory.from_environment(require_token=False).token == ""

    def test_invalid_settings(self):
        with pytest.raises(ValueError):
            ChatConfig(max_retries=0)
