"""Tests for the TTL-backed OAuth grant store."""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from idbroker.core.exceptions import ApiError, ErrorKind
from idbroker.services.grant_store import CodeGrant, GrantStore, TokenGrant
from tests.helpers.fakes import DummyRedis


class FailingRedis(DummyRedis):
    def setex(self, key, ttl, value):
        raise RedisConnectionError("down")


class TestGrantStore:
    def test_code_keys_and_ttl(self, dummy_redis) -> None:
        store = GrantStore(dummy_redis)

        code = store.issue_code(CodeGrant(user_id=1, client_id="c", redirect_uri="https://a/cb"))

        assert len(code) == 64
        assert dummy_redis.ttl[f"oauth_code:{code}"] == 300

    def test_token_ttls(self, dummy_redis) -> None:
        store = GrantStore(dummy_redis)
        grant = TokenGrant(user_id=1, client_id="c", nonce="n")

        access = store.issue_access_token(grant)
        refresh = store.issue_refresh_token(grant)

        assert dummy_redis.ttl[f"oauth_access_token:{access}"] == 3600
        assert dummy_redis.ttl[f"oauth_refresh_token:{refresh}"] == 14 * 86400
        assert store.get_access_token(access) == grant

    def test_codes_are_reusable_by_default(self, dummy_redis) -> None:
        store = GrantStore(dummy_redis)
        grant = CodeGrant(user_id=1, client_id="c", redirect_uri="https://a/cb", nonce="n")
        code = store.issue_code(grant)

        assert store.redeem_code(code) == grant
        assert store.redeem_code(code) == grant

    def test_single_use_codes(self, dummy_redis) -> None:
        store = GrantStore(dummy_redis, single_use_codes=True)
        code = store.issue_code(CodeGrant(user_id=1, client_id="c", redirect_uri="https://a/cb"))

        assert store.redeem_code(code) is not None
        assert store.redeem_code(code) is None

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"unexpected": true}'])
    def test_malformed_values_are_misses(self, dummy_redis, raw: str) -> None:
        dummy_redis.store["oauth_code:abc"] = raw

        assert GrantStore(dummy_redis).redeem_code("abc") is None

    def test_unknown_and_empty_keys(self, grant_store) -> None:
        assert grant_store.redeem_code("missing") is None
        assert grant_store.get_access_token("") is None

    def test_store_failure_is_internal_error(self) -> None:
        store = GrantStore(FailingRedis())

        with pytest.raises(ApiError) as exc_info:
            store.issue_access_token(TokenGrant(user_id=1, client_id="c"))

        assert exc_info.value.kind is ErrorKind.INTERNAL
