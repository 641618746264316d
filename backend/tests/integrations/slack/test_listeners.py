from unittest.mock import MagicMock

from gateway.integrations.slack.dispatcher import WILDCARD, slack
from gateway.integrations.slack.exceptions import UpstreamFailure
from gateway.integrations.slack.listeners import log_delivery
from gateway.integrations.slack.models import SlackPayload


def test_log_delivery_is_registered_on_wildcard():
    assert log_delivery in slack.listeners(WILDCARD)


def test_log_delivery_logs_inbound_payload(caplog):
    caplog.set_level("INFO", logger="gateway")
    client = MagicMock(channel="C1")
    payload = SlackPayload.model_validate({"team_id": "T1", "command": "/foo"})

    log_delivery(payload, client, MagicMock())

    assert "slash_command delivery for team T1 (channel=C1)" in caplog.text


def test_log_delivery_accepts_install_events(caplog):
    caplog.set_level("INFO", logger="gateway")

    log_delivery({"code": "abc"}, UpstreamFailure({"ok": False, "error": "invalid_code"}))

    assert "delivery" not in caplog.text
