from __future__ import annotations

from tokenvote._redact import redact_for_log, redact_url


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "pageSize": "300",
        "key": "AIza-secret",
        "nested": {"mqtt_password": "pw", "token": "abc"},
    }

    redacted = redact_for_log(payload)
    assert redacted["pageSize"] == "300"
    assert redacted["key"] == "<redacted>"
    assert redacted["nested"]["mqtt_password"] == "<redacted>"
    assert redacted["nested"]["token"] == "<redacted>"


def test_redact_for_log_truncates_long_catalog_names() -> None:
    entry = {"address": "So11111111111111111111111111111111111111112", "name": "Wrapped SOL " * 20}
    redacted = redact_for_log(entry, max_string=16)
    assert redacted["name"].startswith("Wrapped SOL Wrap")
    assert redacted["name"].endswith("<truncated>")
    assert redacted["address"] == entry["address"][:16] + "…<truncated>"


def test_redact_for_log_caps_long_lists() -> None:
    redacted = redact_for_log(list(range(50)))
    assert redacted[:3] == [0, 1, 2]
    assert redacted[-1] == "<+30 more>"


def test_redact_url_hides_api_key() -> None:
    url = "https://firestore.googleapis.com/v1/projects/p?pageSize=300&key=secret"
    assert redact_url(url) == "https://firestore.googleapis.com/v1/projects/p?pageSize=300&key=<redacted>"
    assert redact_url("https://tokens.jup.ag/tokens") == "https://tokens.jup.ag/tokens"
