# Slack endpoint router.
#
# A single Request URL serves both directions Slack talks to us:
#
#   GET  — OAuth install (redirect to Slack, then back with ?code=)
#   POST — every inbound delivery: Events API, slash commands, outgoing
#          webhooks and interactive messages
#
# Deliveries are acknowledged immediately; listeners run afterwards.

import json
from urllib.parse import parse_qs

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from gateway.integrations.slack.dispatcher import slack
from gateway.integrations.slack.exceptions import InvalidRequest

router = APIRouter(prefix="/integrations/slack", tags=["slack"])


async def read_body(request: Request) -> dict:
    """Decode a JSON or form-encoded Slack request body."""
    raw = await request.body()
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/x-www-form-urlencoded"):
        try:
            form = parse_qs(raw.decode())
        except UnicodeDecodeError as e:
            raise InvalidRequest("form body is not UTF-8") from e
        return {key: values[0] for key, values in form.items()}

    try:
        body = json.loads(raw or b"{}")
    except ValueError as e:
        raise InvalidRequest("request body is not JSON") from e
    if not isinstance(body, dict):
        raise InvalidRequest("request body must be an object")
    return body


@router.get("")
async def slack_oauth(request: Request):
    """Start or finish the OAuth install."""
    url = await slack.handle_oauth(dict(request.query_params))
    return RedirectResponse(url)


@router.post("")
async def slack_events(request: Request):
    body = await read_body(request)
    challenge = await slack.handle_event(body)

    if challenge:
        return JSONResponse(content={"challenge": challenge})

    return Response(status_code=200)
