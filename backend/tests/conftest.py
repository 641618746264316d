import json
from urllib.parse import parse_qs
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from gateway.integrations.slack.models import SlackBotCredential, SlackCredential


class FakeSlack:
    """Stands in for the Slack API behind an ``httpx.MockTransport``.

    Responses are keyed by API method name (``chat.postMessage``) or by full
    URL for response_url callbacks. Anything unregistered answers ``{"ok": true}``.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._responses: dict[str, httpx.Response] = {}

    def respond(self, key: str, response: httpx.Response) -> None:
        self._responses[key] = response

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        method = request.url.path.rsplit("/", 1)[-1]
        response = self._responses.get(url) or self._responses.get(method)
        if response is None:
            return httpx.Response(200, json={"ok": True})
        return response

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    @staticmethod
    def form(request: httpx.Request) -> dict:
        return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}

    @staticmethod
    def json(request: httpx.Request) -> dict:
        return json.loads(request.content)


@pytest.fixture
def fake_slack():
    return FakeSlack()


@pytest.fixture
def mock_store():
    """Credential store double."""
    store = MagicMock()
    store.get = AsyncMock(return_value=None)
    store.save = AsyncMock(side_effect=lambda credential: credential)
    return store


@pytest.fixture
def user_credential():
    return SlackCredential(team_id="T1", access_token="xoxp-user")


@pytest.fixture
def bot_credential():
    return SlackCredential(
        team_id="T1",
        access_token="xoxp-user",
        bot=SlackBotCredential(bot_user_id="U0BOT", bot_access_token="xoxb-bot"),
    )
