import json
import time
from unittest.mock import MagicMock, patch

import pytest

from certlifecycle.errors import ConfigurationError
from certlifecycle.tpp import Connector
from certlifecycle.utils.config import DEFAULT_CLIENT_ID, ConnectorSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    # Keep a developer's .env out of the tests
    monkeypatch.chdir(tmp_path)
    for name in ("BASE_URL", "ZONE", "ACCESS_TOKEN", "REFRESH_TOKEN", "API_KEY", "USERNAME",
                 "PASSWORD", "INSECURE", "ENVIRONMENT", "TRUST_BUNDLE", "CLIENT_P12"):
        monkeypatch.delenv(f"CL_{name}", raising=False)


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("CL_BASE_URL", "https://tpp.example.com")
    monkeypatch.setenv("CL_ZONE", "DevOps\\Web")
    monkeypatch.setenv("CL_INSECURE", "true")
    monkeypatch.setenv("CL_POLL_INTERVAL_SECONDS", "0.5")

    settings = ConnectorSettings()

    assert settings.BASE_URL == "https://tpp.example.com"
    assert settings.ZONE == "DevOps\\Web"
    assert settings.INSECURE is True
    assert settings.POLL_INTERVAL_SECONDS == 0.5
    assert settings.CLIENT_ID == DEFAULT_CLIENT_ID


def test_missing_base_url_is_critical():
    issues = ConnectorSettings().validate_connection_config()
    assert "CRITICAL: CL_BASE_URL not set" in issues
    assert any("no credentials" in issue for issue in issues)


def test_insecure_in_production_is_critical():
    settings = ConnectorSettings(BASE_URL="https://x", API_KEY="k", INSECURE=True, ENVIRONMENT="production")
    assert settings.is_production()
    assert "CRITICAL: CL_INSECURE=true in production" in settings.validate_connection_config()


def test_username_without_password_is_critical():
    settings = ConnectorSettings(BASE_URL="https://x", USERNAME="alice")
    assert "CRITICAL: CL_USERNAME set without CL_PASSWORD" in settings.validate_connection_config()


def test_clean_configuration_has_no_issues():
    assert ConnectorSettings(BASE_URL="https://x", ACCESS_TOKEN="t").validate_connection_config() == []


def test_from_settings_rejects_critical_issues():
    with pytest.raises(ConfigurationError):
        Connector.from_settings(ConnectorSettings())


def test_from_settings_with_token_skips_grant():
    with patch("requests.Session.request") as mock_request:
        connector = Connector.from_settings(
            ConnectorSettings(BASE_URL="tpp.example.com", ZONE="Z", ACCESS_TOKEN="t", HTTP_TIMEOUT_SECONDS=7)
        )
    mock_request.assert_not_called()
    assert connector.zone == "Z"
    assert connector.client.timeout == 7
    assert connector.retrieve_timeout == 180.0
    assert connector.client.base_url == "https://tpp.example.com/"
    assert connector.tokens.auth_headers() == {"Authorization": "Bearer t"}


@patch("requests.Session.request")
def test_from_settings_performs_password_grant(mock_request):
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.reason = "OK"
    mock_response.content = json.dumps({
        "access_token": "granted",
        "refresh_token": "r",
        "expires": int(time.time()) + 3600,
    }).encode()
    mock_request.return_value = mock_response

    connector = Connector.from_settings(
        ConnectorSettings(BASE_URL="https://tpp.example.com", USERNAME="alice", PASSWORD="pw")
    )

    assert mock_request.call_args[0][1] == "https://tpp.example.com/vedauth/authorize/oauth"
    assert mock_request.call_args[1]["json"]["username"] == "alice"
    assert connector.tokens.auth_headers() == {"Authorization": "Bearer granted"}
