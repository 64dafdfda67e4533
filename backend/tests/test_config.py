import pytest

from ryls_api import main
from ryls_api.errors import ConfigurationError


def test_default_configuration_is_valid():
    main.validate_configuration()


def test_unsupported_expiry_unit(monkeypatch):
    monkeypatch.setattr(main.settings, "PAYMENT_EXPIRY_UNIT", "week")
    with pytest.raises(ConfigurationError):
        main.validate_configuration()


def test_unknown_gateway_mode(monkeypatch):
    monkeypatch.setattr(main.settings, "MIDTRANS_MODE", "staging")
    with pytest.raises(ConfigurationError):
        main.validate_configuration()


def test_missing_server_key_is_fatal_outside_sandbox_debug(monkeypatch):
    monkeypatch.setattr(main.settings, "MIDTRANS_SANDBOX_SERVER_KEY", "")
    monkeypatch.setattr(main.settings, "DEBUG", False)
    with pytest.raises(ConfigurationError):
        main.validate_configuration()

    monkeypatch.setattr(main.settings, "DEBUG", True)
    main.validate_configuration()


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["gateway_mode"] == "sandbox"


def test_server_key_is_masked():
    assert main._mask("SB-Mid-server-abcdef123") == "SB-Mid..."
