"""API tests for exchange connections and saved AI provider keys."""

import pytest

from corebound.api.deps import get_verifier_factory
from corebound.credentials import CredentialCipher
from corebound.database.models import ExchangeConnection, Strategy, UserApiKey
from corebound.exceptions import CredentialError, ExchangeAccountNotFoundError, ExchangeConnectionError, ExchangeError

WALLET = "0x" + "ab" * 20
PRIVATE_KEY = "0x" + "cd" * 32


def hyperliquid_body(**overrides):
    body = {"venue": "hyperliquid", "wallet_address": WALLET, "key_material_encrypted": PRIVATE_KEY}
    body.update(overrides)
    return body


class TestCreateConnection:
    """Test linking exchange accounts."""

    def test_hyperliquid_verified_and_encrypted(self, client, auth_headers, db_session, config, wallet_checker, user_id):
        response = client.post("/api/exchange-connections", json=hyperliquid_body(), headers=auth_headers(user_id))

        assert response.status_code == 201
        body = response.json()
        assert body["verified"] is True
        assert body["connection"]["wallet_address"] == WALLET
        assert "key_material_encrypted" not in body["connection"]
        wallet_checker.get_account_state.assert_awaited_once_with(WALLET)
        wallet_checker.close.assert_awaited_once()

        stored = db_session.query(ExchangeConnection).one()
        assert stored.key_material_encrypted.startswith("enc:")
        assert CredentialCipher.from_config(config).decrypt(stored.key_material_encrypted) == PRIVATE_KEY

    def test_coinbase_stored_unverified(self, client, auth_headers, db_session, wallet_checker, user_id):
        response = client.post(
            "/api/exchange-connections",
            json={"venue": "coinbase", "api_key": " organizations/o/apiKeys/k ", "api_secret": "pem"},
            headers=auth_headers(user_id),
        )

        assert response.status_code == 201
        assert response.json()["verified"] is False
        assert response.json()["connection"]["api_key"] == "organizations/o/apiKeys/k"
        assert db_session.query(ExchangeConnection).one().api_secret_encrypted.startswith("enc:")
        wallet_checker.get_account_state.assert_not_awaited()

    @pytest.mark.parametrize("body,message", [
        (hyperliquid_body(wallet_address=None), "Missing required fields: wallet_address, key_material_encrypted"),
        (hyperliquid_body(key_material_encrypted="0x123"), "Invalid private key format"),
        (hyperliquid_body(wallet_address="0x123"), "Invalid wallet address format"),
        ({"venue": "coinbase", "api_key": "k"}, "Missing required fields: api_key, api_secret"),
    ])
    def test_rejected_input(self, client, auth_headers, user_id, body, message):
        response = client.post("/api/exchange-connections", json=body, headers=auth_headers(user_id))
        assert response.status_code == 400
        assert response.json()["error"].startswith(message)

    def test_unknown_wallet(self, client, auth_headers, wallet_checker, user_id):
        wallet_checker.get_account_state.side_effect = ExchangeAccountNotFoundError("Could not find this wallet address")

        response = client.post("/api/exchange-connections", json=hyperliquid_body(), headers=auth_headers(user_id))

        assert response.status_code == 400
        assert response.json() == {"error": "Could not find this wallet address"}
        wallet_checker.close.assert_awaited_once()

    def test_hyperliquid_unreachable(self, client, auth_headers, wallet_checker, user_id):
        wallet_checker.get_account_state.side_effect = ExchangeConnectionError("timeout")

        response = client.post("/api/exchange-connections", json=hyperliquid_body(), headers=auth_headers(user_id))

        assert response.status_code == 400
        assert response.json()["error"].startswith("Could not connect to Hyperliquid")
        assert response.json()["details"] == "timeout"

    def test_one_connection_per_venue(self, client, auth_headers, user_id):
        client.post("/api/exchange-connections", json=hyperliquid_body(), headers=auth_headers(user_id))
        response = client.post("/api/exchange-connections", json=hyperliquid_body(), headers=auth_headers(user_id))

        assert response.status_code == 409
        assert response.json() == {"error": "An exchange connection for hyperliquid already exists"}


class TestManageConnections:

    @pytest.fixture
    def connection(self, client, auth_headers, user_id):
        response = client.post("/api/exchange-connections", json=hyperliquid_body(), headers=auth_headers(user_id))
        return response.json()["connection"]

    def test_list_is_per_user(self, client, auth_headers, connection, user_id, other_user_id):
        mine = client.get("/api/exchange-connections", headers=auth_headers(user_id)).json()["connections"]
        theirs = client.get("/api/exchange-connections", headers=auth_headers(other_user_id)).json()["connections"]

        assert [c["id"] for c in mine] == [connection["id"]]
        assert theirs == []

    def test_delete(self, client, auth_headers, connection, user_id, other_user_id):
        url = f"/api/exchange-connections/{connection['id']}"
        assert client.delete(url, headers=auth_headers(other_user_id)).status_code == 404
        assert client.delete(url, headers=auth_headers(user_id)).json() == {"success": True}
        assert client.delete(url, headers=auth_headers(user_id)).status_code == 404

    def test_verify(self, client, auth_headers, connection, mock_verifier, user_id):
        response = client.post(f"/api/exchange-connections/{connection['id']}/verify", headers=auth_headers(user_id))

        assert response.status_code == 200
        assert response.json()["success"] is True
        mock_verifier.verify.assert_awaited_once()
        mock_verifier.close.assert_awaited_once()

    def test_verify_exchange_failure(self, client, auth_headers, connection, mock_verifier, user_id):
        """Test an exchange failure answers 200 with success false."""
        mock_verifier.verify.side_effect = ExchangeError("Hyperliquid API error: 500")

        response = client.post(f"/api/exchange-connections/{connection['id']}/verify", headers=auth_headers(user_id))

        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "error": "Failed to connect to Hyperliquid",
            "details": "Hyperliquid API error: 500",
        }
        mock_verifier.close.assert_awaited_once()

    def test_verify_decrypt_failure(self, app, client, auth_headers, connection, user_id):
        def failing_factory(connection, config):
            raise CredentialError("Credential failed authentication")

        app.dependency_overrides[get_verifier_factory] = lambda: failing_factory

        response = client.post(f"/api/exchange-connections/{connection['id']}/verify", headers=auth_headers(user_id))

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to decrypt private key"

    def test_verify_unknown(self, client, auth_headers, user_id):
        response = client.post("/api/exchange-connections/missing/verify", headers=auth_headers(user_id))
        assert response.status_code == 404
        assert response.json() == {"error": "Connection not found"}


class TestApiKeys:
    """Test saved AI provider keys."""

    def _create(self, client, headers, **overrides):
        body = {"provider": "openai", "label": "Main", "api_key": "sk-test-1234567890"}
        body.update(overrides)
        return client.post("/api/settings/api-keys", json=body, headers=headers)

    def test_create_returns_preview_only(self, client, auth_headers, db_session, user_id):
        response = self._create(client, auth_headers(user_id))

        assert response.status_code == 201
        key = response.json()["key"]
        assert key["key_preview"] == "****7890"
        assert "encrypted_key" not in key
        assert db_session.query(UserApiKey).one().encrypted_key.startswith("enc:")

        listed = client.get("/api/settings/api-keys", headers=auth_headers(user_id)).json()["keys"]
        assert [k["id"] for k in listed] == [key["id"]]

    @pytest.mark.parametrize("overrides,status,message", [
        ({"label": None}, 400, "Missing required fields: provider, label, api_key"),
        ({"provider": "skynet"}, 400, "Invalid provider"),
        ({"label": "bad/label"}, 400, "Label can only contain"),
        ({"api_key": "short"}, 400, "API key appears to be invalid (too short)"),
    ])
    def test_rejections(self, client, auth_headers, user_id, overrides, status, message):
        response = self._create(client, auth_headers(user_id), **overrides)
        assert response.status_code == status
        assert response.json()["error"].startswith(message)

    def test_duplicate_label(self, client, auth_headers, user_id):
        self._create(client, auth_headers(user_id))
        response = self._create(client, auth_headers(user_id))

        assert response.status_code == 409
        assert response.json() == {"error": 'You already have a key labeled "Main" for openai'}

    def test_same_label_other_provider(self, client, auth_headers, user_id):
        self._create(client, auth_headers(user_id))
        assert self._create(client, auth_headers(user_id), provider="anthropic").status_code == 201

    def test_delete_detaches_strategies(self, client, auth_headers, create_strategy, db_session, user_id):
        key = self._create(client, auth_headers(user_id)).json()["key"]
        strategy = create_strategy(user_id, use_platform_key=False, saved_api_key_id=key["id"])
        assert strategy["saved_api_key_id"] == key["id"]

        response = client.delete(f"/api/settings/api-keys/{key['id']}", headers=auth_headers(user_id))

        assert response.json() == {"success": True}
        db_session.expire_all()
        assert db_session.get(Strategy, strategy["id"]).saved_api_key_id is None

    def test_delete_permissions(self, client, auth_headers, user_id, other_user_id):
        key = self._create(client, auth_headers(user_id)).json()["key"]

        denied = client.delete(f"/api/settings/api-keys/{key['id']}", headers=auth_headers(other_user_id))
        missing = client.delete("/api/settings/api-keys/missing", headers=auth_headers(user_id))

        assert denied.status_code == 403
        assert missing.status_code == 404
        assert missing.json() == {"error": "Key not found"}
