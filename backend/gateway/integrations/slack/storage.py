import logging
from typing import Protocol

from redis.asyncio import Redis

from gateway.integrations.slack.models import SlackCredential
from gateway.settings import app_settings

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    """What the dispatcher needs from credential storage."""

    async def get(self, team_id: str | None) -> SlackCredential | None: ...

    async def save(self, credential: SlackCredential) -> SlackCredential: ...


class RedisCredentialStore:
    """Redis-backed credential storage keyed by team_id."""

    def __init__(
        self,
        *,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        prefix: str = "slack",
        redis: Redis | None = None,
    ):
        self.redis: Redis = redis or Redis(
            host=host, port=port, db=db, decode_responses=True
        )
        self._prefix = prefix

    @classmethod
    def from_settings(cls) -> "RedisCredentialStore":
        return cls(
            host=app_settings.redis_host,
            port=app_settings.redis_port,
            db=app_settings.redis_db,
            prefix=app_settings.credential_prefix,
        )

    def _team_key(self, team_id: str) -> str:
        return f"{self._prefix}:teams:{team_id}"

    async def get(self, team_id: str | None) -> SlackCredential | None:
        if not team_id:
            return None
        raw = await self.redis.get(self._team_key(team_id))
        if not raw:
            logger.debug("No stored credential for team %s", team_id)
            return None
        return SlackCredential.model_validate_json(raw)

    async def save(self, credential: SlackCredential) -> SlackCredential:
        await self.redis.set(
            self._team_key(credential.team_id),
            credential.model_dump_json(),
        )
        logger.info("Stored credential for team %s", credential.team_id)
        return credential

    async def aclose(self) -> None:
        await self.redis.aclose()
