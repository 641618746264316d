import json
import logging
import re
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from gateway.integrations.slack.exceptions import (
    InvalidRequest,
    TransportFailure,
    UpstreamFailure,
)
from gateway.integrations.slack.models import SlackCredential, SlackPayload
from gateway.integrations.slack.settings import slack_settings

logger = logging.getLogger(__name__)

Message = str | dict[str, Any]

_URL_PATTERN = re.compile(r"^http", re.IGNORECASE)


def _as_message(message: Message) -> dict[str, Any]:
    if isinstance(message, str):
        return {"text": message}
    return dict(message)


def _channel_id(channel: str | dict[str, Any] | None) -> str | None:
    """Events like channel_created carry the whole channel object."""
    if isinstance(channel, dict):
        return channel.get("id")
    return channel


def _form_encode(body: dict[str, Any]) -> dict[str, Any]:
    """Flatten a message for a form body; attachments/blocks travel as JSON strings."""
    return {
        key: json.dumps(value) if isinstance(value, (dict, list)) else value
        for key, value in body.items()
    }


class SlackClient:
    """Talks back to Slack on behalf of one inbound payload.

    Resolves where a response goes (``channel``), which credential signs it
    (``token``) and whether a one-shot ``response_url`` is available, then
    exposes ``reply``/``say``/``send`` on top of that. Built without a
    credential or payload for the install flow.
    """

    def __init__(
        self,
        credential: SlackCredential | None = None,
        payload: SlackPayload | None = None,
        *,
        http: httpx.AsyncClient | None = None,
    ):
        self.credential = credential
        self.payload = payload
        self._http_client = http

    @property
    def response_url(self) -> str | None:
        if self.payload:
            return self.payload.response_url
        return None

    @property
    def channel(self) -> str | None:
        """Destination of a reply; the first populated field wins."""
        payload = self.payload
        if not payload:
            return None

        event = payload.event
        if payload.channel_id:
            return payload.channel_id
        if payload.channel:
            return payload.channel if isinstance(payload.channel, str) else payload.channel.id
        if event and event.channel:
            return _channel_id(event.channel)
        if event and event.item:
            return _channel_id(event.item.channel)
        return None

    @property
    def token(self) -> str | None:
        if self.credential:
            return self.credential.active_token
        return None

    async def reply(self, message: Message, ephemeral: bool = False) -> dict:
        """Answer the payload, through its response_url when there is one."""
        if not self.response_url and ephemeral:
            raise InvalidRequest("ephemeral delivery requires a response callback")

        if self.response_url:
            message = _as_message(message)
            if not ephemeral:
                message["response_type"] = "in_channel"
            return await self.send(self.response_url, message)

        return await self.say(message)

    async def say(self, message: Message) -> dict:
        """Post a message to the payload's channel."""
        return await self.send("chat.postMessage", message)

    async def send(self, endpoint: str, message: Message) -> dict:
        """Call an API method (form body) or a callback URL (JSON body).

        Caller keys win over the ``token``/``channel`` defaults. Returns the
        response body without its ``ok`` flag.

        Raises:
            UpstreamFailure: Slack answered with a falsy ``ok``.
            TransportFailure: the request never got a 2xx answer.
        """
        defaults = {"token": self.token, "channel": self.channel}
        body = {
            key: value
            for key, value in {**defaults, **_as_message(message)}.items()
            if value is not None
        }

        is_url = bool(_URL_PATTERN.match(endpoint))
        target = endpoint if is_url else f"{slack_settings.slack_api_url}/{endpoint}"

        try:
            async with self._http() as client:
                if is_url:
                    response = await client.post(target, json=body)
                else:
                    response = await client.post(target, data=_form_encode(body))
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Slack call to %s failed: %s", endpoint, e)
            raise TransportFailure(f"Slack call to {endpoint} failed: {e}") from e

        return self.get_data(response)

    @staticmethod
    def get_data(response: httpx.Response) -> dict:
        """OK check: success only when the body carries a truthy ``ok``."""
        try:
            data = response.json()
        except ValueError:
            # response_url answers with a bare "ok"
            text = response.text.strip()
            data = {"ok": True} if text == "ok" else {"error": text}

        if not isinstance(data, dict):
            data = {"error": data}

        if data.get("ok"):
            data.pop("ok")
            return data

        raise UpstreamFailure(data)

    # -- OAuth install -------------------------------------------------------

    def get_auth_url(self, args: dict[str, Any]) -> str:
        """Slack authorize URL, forwarding the incoming query (state, redirect_uri...)."""
        args = {
            **args,
            "scope": slack_settings.slack_client_scopes,
            "client_id": slack_settings.slack_client_id,
        }
        return f"{slack_settings.slack_oauth_url}?{urlencode(args)}"

    async def get_token(self, args: dict[str, Any]) -> SlackCredential:
        data = await self.send("oauth.access", {
            "code": args.get("code"),
            "state": args.get("state"),
            "client_id": slack_settings.slack_client_id,
            "client_secret": slack_settings.slack_client_secret.get_secret_value(),
        })
        try:
            return SlackCredential.model_validate(data)
        except ValidationError as e:
            raise UpstreamFailure({"error": "invalid_oauth_response"}) from e

    async def update_team_url(self, credential: SlackCredential) -> SlackCredential:
        data = await self.send("auth.test", {"token": credential.access_token})
        credential.url = data.get("url")
        return credential

    async def install(self, args: dict[str, Any]) -> SlackCredential:
        """Exchange the OAuth code and resolve the team URL.

        Both calls must succeed; the credential is only returned (and only
        then saved by the caller) once the team URL is attached.
        """
        credential = await self.get_token(args)
        return await self.update_team_url(credential)

    @asynccontextmanager
    async def _http(self):
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient() as client:
            yield client
