"""Tests for discovery, key set, metrics and health endpoints."""

import json

import jwt
from jwt.algorithms import RSAAlgorithm


class TestWellKnown:
    def test_discovery_document(self, client) -> None:
        response = client.get("/.well-known/openid-configuration")

        assert response.status_code == 200
        body = response.json()
        assert body["issuer"] == "https://id.example.com"
        assert body["jwks_uri"] == "https://id.example.com/.well-known/jwks"
        assert body["id_token_signing_alg_values_supported"] == ["RS256"]
        assert "client_secret_basic" in body["token_endpoint_auth_methods_supported"]

    def test_jwks_lists_current_key(self, client, key_ring) -> None:
        keys = client.get("/.well-known/jwks").json()["keys"]

        assert [key["kid"] for key in keys] == [str(key_ring.current_kid)]
        assert keys[0]["kty"] == "RSA"
        assert keys[0]["e"] == "AQAB"
        assert keys[0]["use"] == "sig"
        assert keys[0]["alg"] == "RS256"

    def test_published_key_verifies_ring_signatures(self, client, key_ring) -> None:
        [jwk] = client.get("/.well-known/jwks").json()["keys"]
        token = jwt.encode({"sub": "abc"}, key_ring.signing_keys[key_ring.current_kid], algorithm="RS256")

        public_key = RSAAlgorithm.from_jwk(json.dumps(jwk))

        assert jwt.decode(token, public_key, algorithms=["RS256"]) == {"sub": "abc"}


class TestOperationalEndpoints:
    def test_health(self, client) -> None:
        assert client.get("/health").json() == {"status": "ok"}

    def test_metrics_after_traffic(self, client) -> None:
        client.post("/v1/auth/login/passkey/initiate")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")

    def test_unknown_route_envelope(self, client) -> None:
        response = client.get("/v1/does-not-exist")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"
