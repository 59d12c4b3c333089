from __future__ import annotations

from storesync._redact import redact_for_log


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "id": "ord-1",
        "apikey": "anon-key",
        "Authorization": "Bearer abc",
        "payment_screenshot": "https://cdn.example.com/receipt.png",
        "nested": {"access_token": "tok", "refresh-token": "ref"},
    }

    redacted = redact_for_log(payload)
    assert redacted["id"] == "ord-1"
    assert redacted["apikey"] == "<redacted>"
    assert redacted["Authorization"] == "<redacted>"
    assert redacted["payment_screenshot"] == "<redacted>"
    assert redacted["nested"]["access_token"] == "<redacted>"
    assert redacted["nested"]["refresh-token"] == "<redacted>"


def test_redact_for_log_masks_customer_contact_fields() -> None:
    payload = {
        "email": "buyer@example.com",
        "addressInfo": {"phoneNumber": "+212600000000", "shippingAddress": "1 Rue X", "address": "ab"},
    }

    redacted = redact_for_log(payload)
    assert redacted["email"] == "bu…<masked>"
    assert redacted["addressInfo"]["phoneNumber"] == "+2…<masked>"
    assert redacted["addressInfo"]["shippingAddress"] == "1 …<masked>"
    assert redacted["addressInfo"]["address"] == "<masked>"


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_for_log_walks_sequences_and_bytes() -> None:
    redacted = redact_for_log([{"token": "t"}, b"\x00\x01", 3])
    assert redacted == [{"token": "<redacted>"}, "<bytes:2b>", 3]
