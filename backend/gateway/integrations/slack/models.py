# Pydantic models for Slack deliveries and stored credentials.
#
# Slack posts several payload shapes to the same Request URL:
#
#   - url_verification: sent once when the URL is registered, carries a
#     challenge that must be echoed back.
#   - event_callback: Events API envelope, the inner event is in "event".
#   - slash commands: form-encoded, carry "command".
#   - outgoing webhooks: form-encoded, carry "trigger_word".
#   - interactive messages / actions: a form field "payload" holding JSON,
#     carry "callback_id" and/or a top-level "type".
#
# Payloads are kept open (extra="allow") because listeners may need fields
# we never model here.

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class PayloadKind(str, enum.Enum):
    challenge = "challenge"
    event_callback = "event_callback"
    slash_command = "slash_command"
    outgoing_webhook = "outgoing_webhook"
    interactive_message = "interactive_message"
    interactive_action = "interactive_action"
    unknown = "unknown"


class SlackEventItem(BaseModel):
    """Item an event refers to (reactions, pins, stars)."""
    model_config = ConfigDict(extra="allow")

    type: str | None = None
    channel: str | dict[str, Any] | None = None
    ts: str | None = None


class SlackEvent(BaseModel):
    """The inner event object inside an event_callback payload."""
    model_config = ConfigDict(extra="allow")

    type: str
    channel: str | dict[str, Any] | None = None
    user: Any = None
    text: str | None = None
    ts: str | None = None
    bot_id: str | None = None
    subtype: str | None = None
    thread_ts: str | None = None
    item: SlackEventItem | None = None


class SlackChannel(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    name: str | None = None


class SlackTeam(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    domain: str | None = None


class SlackPayload(BaseModel):
    """One inbound delivery, whatever its shape."""
    model_config = ConfigDict(extra="allow")

    type: str | None = None
    token: str | None = None
    challenge: str | None = None
    team_id: str | None = None
    team: SlackTeam | None = None
    event: SlackEvent | None = None
    channel: SlackChannel | str | None = None
    channel_id: str | None = None
    command: str | None = None
    trigger_word: str | None = None
    callback_id: str | None = None
    response_url: str | None = None
    bot_id: str | None = None

    @property
    def installation_id(self) -> str | None:
        if self.team_id:
            return self.team_id
        return self.team.id if self.team else None

    @property
    def is_bot(self) -> bool:
        """True when the delivery (or its nested event) was authored by a bot."""
        author = self.event if self.event is not None else self
        return bool(author.bot_id)

    @property
    def kind(self) -> PayloadKind:
        if self.challenge:
            return PayloadKind.challenge
        if self.event is not None:
            return PayloadKind.event_callback
        if self.command:
            return PayloadKind.slash_command
        if self.trigger_word:
            return PayloadKind.outgoing_webhook
        if self.callback_id:
            return PayloadKind.interactive_message
        if self.type:
            return PayloadKind.interactive_action
        return PayloadKind.unknown


class CredentialKind(str, enum.Enum):
    user = "user"
    bot = "bot"


class SlackBotCredential(BaseModel):
    model_config = ConfigDict(extra="allow")

    bot_user_id: str | None = None
    bot_access_token: str


class SlackCredential(BaseModel):
    """Access data returned by oauth.access, persisted per team."""
    model_config = ConfigDict(extra="allow")

    team_id: str
    access_token: str
    scope: str | None = None
    user_id: str | None = None
    team_name: str | None = None
    url: str | None = None
    bot: SlackBotCredential | None = None

    @property
    def kind(self) -> CredentialKind:
        return CredentialKind.user if self.bot is None else CredentialKind.bot

    @property
    def active_token(self) -> str:
        """Token used for API calls; the bot token wins when installed with a bot."""
        if self.kind is CredentialKind.bot:
            return self.bot.bot_access_token
        return self.access_token
