from pathlib import Path
from pydantic import ConfigDict, SecretStr
from pydantic_settings import BaseSettings

BASE_DIR = Path(__file__).resolve().parent.parent.parent.parent
ROOT_ENV = BASE_DIR.parent / ".env"


class SlackSettings(BaseSettings):
    # OAuth app credentials, used only by the install flow
    slack_client_id: str = ""
    slack_client_secret: SecretStr = SecretStr("")
    slack_client_scopes: str = ""

    # Legacy verification token; inbound events are rejected on mismatch
    slack_verification_token: str | None = None

    # Where the browser lands after an install attempt
    slack_install_redirect: str = "http://localhost:3000/slack/installed"

    # Drop events authored by bots (ours included)
    slack_ignore_bots: bool = True

    slack_api_url: str = "https://slack.com/api"
    slack_oauth_url: str = "https://slack.com/oauth/authorize"

    model_config: ConfigDict = ConfigDict(
        env_file=ROOT_ENV,
        extra="ignore",
    )


slack_settings = SlackSettings()
