"""Errors raised by the Slack gateway."""


class SlackError(Exception):
    """Base class for every gateway error."""


class Unauthorized(SlackError):
    """Inbound payload carried the wrong verification token."""


class InvalidRequest(SlackError):
    """The caller asked for something that can't be delivered."""


class UpstreamFailure(SlackError):
    """Slack answered with a falsy ``ok`` flag.

    The full response body is kept on ``data`` since that's where Slack puts
    the error code (``{"ok": false, "error": "invalid_auth"}``).
    """

    def __init__(self, data: dict):
        self.data = data
        super().__init__(data.get("error", "unknown_error"))


class TransportFailure(SlackError):
    """Slack could not be reached, or answered with a non-2xx status."""
