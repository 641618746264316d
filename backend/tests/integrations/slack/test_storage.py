from unittest.mock import AsyncMock

import pytest

from gateway.integrations.slack.models import SlackCredential
from gateway.integrations.slack.storage import RedisCredentialStore


@pytest.fixture
def redis():
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    return redis


@pytest.fixture
def store(redis):
    return RedisCredentialStore(prefix="test", redis=redis)


@pytest.mark.asyncio
async def test_get_missing_team(store, redis):
    assert await store.get("T1") is None
    redis.get.assert_awaited_once_with("test:teams:T1")


@pytest.mark.asyncio
async def test_get_without_team_id_skips_redis(store, redis):
    assert await store.get(None) is None
    redis.get.assert_not_awaited()


@pytest.mark.asyncio
async def test_save_then_get(store, redis, bot_credential):
    bot_credential.url = "https://acme.slack.com/"

    saved = await store.save(bot_credential)

    assert saved is bot_credential
    key, raw = redis.set.await_args.args
    assert key == "test:teams:T1"

    redis.get.return_value = raw
    loaded = await store.get("T1")
    assert loaded == bot_credential
    assert loaded.active_token == "xoxb-bot"


@pytest.mark.asyncio
async def test_extra_oauth_fields_survive_storage(store, redis):
    credential = SlackCredential.model_validate({
        "team_id": "T1",
        "access_token": "xoxp-user",
        "incoming_webhook": {"channel": "#general", "url": "https://hooks.slack.com/services/x"},
    })

    await store.save(credential)
    redis.get.return_value = redis.set.await_args.args[1]

    loaded = await store.get("T1")
    assert loaded.incoming_webhook["channel"] == "#general"


@pytest.mark.asyncio
async def test_aclose(store, redis):
    await store.aclose()
    redis.aclose.assert_awaited_once()
