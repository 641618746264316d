# Built-in listeners registered on the process-wide dispatcher.
#
# Integrations add their own listeners the same way, by importing
# ``slack`` and decorating a function with ``@slack.listen(...)``.

import logging

from gateway.integrations.slack.dispatcher import WILDCARD, slack
from gateway.integrations.slack.models import SlackCredential, SlackPayload

logger = logging.getLogger(__name__)


@slack.listen(WILDCARD)
def log_delivery(subject, *args) -> None:
    """Wildcard sees deliveries (payload, client, store) and install events (query, result)."""
    if not isinstance(subject, SlackPayload):
        return
    client = args[0]
    logger.info(
        "Slack %s delivery for team %s (channel=%s)",
        subject.kind.value, subject.installation_id, client.channel,
    )


@slack.listen("install_success")
def log_install(query: dict, credential: SlackCredential) -> None:
    logger.info("Team %s (%s) installed the app", credential.team_id, credential.url)


@slack.listen("install_error")
def log_install_error(query: dict, error: Exception) -> None:
    logger.error("Install failed for state %s: %s", query.get("state"), error)
