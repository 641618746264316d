# Event dispatcher.
#
# Every Slack delivery is classified into one or more channel names and
# each listener registered on those names is called with
# (payload, client, store).  Names come from independent rules, so one
# payload usually lands on several of them:
#
#   *                               every delivery
#   <payload.type>                  e.g. block_actions, event_callback
#   event, <event.type>             Events API
#   slash_command, <command>        slash commands
#   webhook, <trigger_word>         outgoing webhooks
#   interactive_message, <callback_id>
#
# The install flow emits on the same registry: * and install_success get
# (query, credential), * and install_error get (query, error).

import asyncio
import inspect
import json
import logging
from typing import Any, Callable
from urllib.parse import urlencode

import httpx

from gateway.integrations.slack.client import SlackClient
from gateway.integrations.slack.exceptions import (
    InvalidRequest,
    SlackError,
    Unauthorized,
    UpstreamFailure,
)
from gateway.integrations.slack.models import SlackCredential, SlackPayload
from gateway.integrations.slack.settings import slack_settings
from gateway.integrations.slack.storage import CredentialStore, RedisCredentialStore

logger = logging.getLogger(__name__)

WILDCARD = "*"

Listener = Callable[..., Any]


class EventDispatcher:
    """Routes Slack deliveries to the listeners registered for them."""

    def __init__(
        self,
        store: CredentialStore,
        *,
        verification_token: str | None = None,
        ignore_bots: bool = True,
        dispatch_challenges: bool = False,
        install_redirect: str = "",
        http: httpx.AsyncClient | None = None,
    ):
        self.store = store
        self.verification_token = verification_token
        self.ignore_bots = ignore_bots
        self.dispatch_challenges = dispatch_challenges
        self.install_redirect = install_redirect
        self._http = http
        self._listeners: dict[str, list[Listener]] = {}
        self._tasks: set[asyncio.Task] = set()

    # -- registration --------------------------------------------------------

    def on(self, name: str, listener: Listener) -> Listener:
        listeners = self._listeners.setdefault(name, [])
        if listener not in listeners:
            listeners.append(listener)
        return listener

    def listen(self, *names: str) -> Callable[[Listener], Listener]:
        """Decorator registering a listener on one or more names."""
        def decorator(listener: Listener) -> Listener:
            for name in names:
                self.on(name, listener)
            return listener
        return decorator

    def off(self, name: str, listener: Listener) -> None:
        listeners = self._listeners.get(name, [])
        if listener in listeners:
            listeners.remove(listener)

    def listeners(self, name: str) -> list[Listener]:
        return list(self._listeners.get(name, []))

    # -- classification ------------------------------------------------------

    @staticmethod
    def classify(payload: SlackPayload) -> list[str]:
        """Channel names a payload is delivered to, wildcard first."""
        names = [WILDCARD]

        if payload.type:
            names.append(payload.type)

        if payload.event is not None:
            names.extend(["event", payload.event.type])

        if payload.command:
            names.extend(["slash_command", payload.command])

        if payload.trigger_word:
            names.extend(["webhook", payload.trigger_word])

        if payload.callback_id:
            names.extend(["interactive_message", payload.callback_id])

        return names

    # -- delivery ------------------------------------------------------------

    async def emit(self, name: str, *args: Any) -> None:
        """Call every listener on ``name``; one failing listener doesn't stop the rest."""
        for listener in self.listeners(name):
            try:
                result = listener(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Listener %s failed on %r",
                    getattr(listener, "__qualname__", repr(listener)),
                    name,
                )

    async def notify(
        self, payload: SlackPayload, credential: SlackCredential | None
    ) -> None:
        client = SlackClient(credential, payload, http=self._http)
        names = self.classify(payload)
        logger.debug("Dispatching %s delivery to %s", payload.kind.value, names)

        # A name produced by two rules still fires once
        for name in dict.fromkeys(names):
            await self.emit(name, payload, client, self.store)

    async def deliver(self, payload: SlackPayload) -> None:
        credential = await self.store.get(payload.installation_id)
        if credential is None:
            logger.warning("No credential for team %s", payload.installation_id)
        await self.notify(payload, credential)

    @staticmethod
    def decode(body: dict[str, Any]) -> SlackPayload:
        """Build a payload, unwrapping the JSON ``payload`` field of interactive messages."""
        try:
            if isinstance(body.get("payload"), str):
                body = json.loads(body["payload"])
            return SlackPayload.model_validate(body)
        except ValueError as e:
            raise InvalidRequest(f"malformed Slack payload: {e}") from e

    async def handle_event(
        self, body: dict[str, Any], *, background: bool = True
    ) -> str | None:
        """Accept one inbound delivery.

        Returns the challenge to echo back for url_verification, ``None``
        otherwise. Listeners run in a background task unless
        ``background`` is false, so the caller can acknowledge right away.

        Raises:
            Unauthorized: a verification token is configured and doesn't match.
            InvalidRequest: the body isn't a Slack payload.
        """
        payload = self.decode(body)

        if self.verification_token and self.verification_token != payload.token:
            logger.warning("Rejected delivery for team %s: bad verification token",
                           payload.installation_id)
            raise Unauthorized("verification token mismatch")

        if payload.challenge and not self.dispatch_challenges:
            return payload.challenge

        if self.ignore_bots and payload.is_bot:
            logger.debug("Ignoring bot-authored %s delivery", payload.kind.value)
            return payload.challenge

        if background:
            task = asyncio.create_task(self.deliver(payload))
            self._tasks.add(task)
            task.add_done_callback(self._delivery_done)
        else:
            await self.deliver(payload)

        return payload.challenge

    def _delivery_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background delivery failed", exc_info=exc)

    async def handle_oauth(self, query: dict[str, Any]) -> str:
        """Run the install flow and return where to redirect the browser.

        Install events go to ``*`` first, then to ``install_success`` with
        ``(query, credential)`` or ``install_error`` with ``(query, error)``.
        """
        client = SlackClient(http=self._http)

        if not query.get("code"):
            return client.get_auth_url(query)

        redirect_url = f"{self.install_redirect}?{urlencode({'state': query.get('state', '')})}"

        try:
            credential = await client.install(query)
            await self.store.save(credential)
        except Exception as e:
            detail = e.data if isinstance(e, UpstreamFailure) else {"error": str(e)}
            logger.warning("Slack install failed: %s", detail, exc_info=not isinstance(e, SlackError))
            await self.emit(WILDCARD, query, e)
            await self.emit("install_error", query, e)
            return f"{redirect_url}&{urlencode({'error': json.dumps(detail)})}"

        logger.info("Installed Slack app for team %s", credential.team_id)
        await self.emit(WILDCARD, query, credential)
        await self.emit("install_success", query, credential)
        return redirect_url


slack = EventDispatcher(
    RedisCredentialStore.from_settings(),
    verification_token=slack_settings.slack_verification_token,
    ignore_bots=slack_settings.slack_ignore_bots,
    install_redirect=slack_settings.slack_install_redirect,
)
