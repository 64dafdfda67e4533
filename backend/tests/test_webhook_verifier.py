import hashlib

from ryls_api.services import WebhookVerifier

from conftest import SERVER_KEY, sign


def _payload(**overrides):
    payload = {
        "order_id": "RYLS0001",
        "status_code": "200",
        "gross_amount": "225000.00",
        "signature_key": sign("RYLS0001", "200", "225000.00"),
    }
    payload.update(overrides)
    return payload


def test_signature_is_sha512_of_concatenated_fields():
    expected = hashlib.sha512(b"RYLS0001200225000.00" + SERVER_KEY.encode()).hexdigest()
    assert WebhookVerifier(SERVER_KEY).expected_signature("RYLS0001", "200", "225000.00") == expected


def test_valid_signature_verifies():
    assert WebhookVerifier(SERVER_KEY).verify(_payload())


def test_other_server_key_does_not_verify():
    assert not WebhookVerifier("SB-Mid-server-other").verify(_payload())


def test_gross_amount_is_not_reformatted():
    # Signed over "225000.00"; the same value written differently must fail
    assert not WebhookVerifier(SERVER_KEY).verify(_payload(gross_amount="225000"))


def test_tampered_status_code_fails():
    assert not WebhookVerifier(SERVER_KEY).verify(_payload(status_code="201"))


def test_missing_or_non_string_fields_fail():
    verifier = WebhookVerifier(SERVER_KEY)
    payload = _payload()
    del payload["signature_key"]
    assert not verifier.verify(payload)
    assert not verifier.verify(_payload(gross_amount=225000))


def test_empty_server_key_never_verifies():
    payload = _payload(signature_key=sign("RYLS0001", "200", "225000.00", key=""))
    assert not WebhookVerifier("").verify(payload)


def test_signature_is_compared_as_received():
    upper = sign("RYLS0001", "200", "225000.00").upper()
    assert not WebhookVerifier(SERVER_KEY).verify(_payload(signature_key=upper))
