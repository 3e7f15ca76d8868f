"""Tests for encryption, security and money utility modules."""

import hashlib
import hmac
import re
from decimal import Decimal

import pytest
from cryptography.fernet import InvalidToken

from app.core.encryption import decrypt_secret, encrypt_secret, reveal_secret
from app.core.money import to_cents, to_money
from app.core.security import (
    compute_signature,
    generate_order_number,
    generate_session_id,
    parse_signature_header,
    verify_signature,
)

# ---------------------------------------------------------------------------
# app.core.encryption
# ---------------------------------------------------------------------------


class TestEncryptionModule:
    """Tests for app.core.encryption (store gateway and carrier secrets)."""

    def test_encrypt_decrypt_round_trip(self) -> None:
        ciphertext = encrypt_secret("sk_live_abc123")

        assert ciphertext != "sk_live_abc123"
        assert decrypt_secret(ciphertext) == "sk_live_abc123"

    def test_encrypt_produces_different_ciphertext_each_call(self) -> None:
        """Fernet includes a timestamp + IV, so repeated encryptions differ."""
        assert encrypt_secret("same") != encrypt_secret("same")

    def test_decrypt_with_tampered_ciphertext_raises(self) -> None:
        ciphertext = encrypt_secret("secret")
        mid = len(ciphertext) // 2
        tampered_char = "A" if ciphertext[mid] != "A" else "B"
        tampered = ciphertext[:mid] + tampered_char + ciphertext[mid + 1 :]

        with pytest.raises(InvalidToken):
            decrypt_secret(tampered)

    def test_encrypt_unicode(self) -> None:
        plaintext = "senha-çãé 🔐"
        assert decrypt_secret(encrypt_secret(plaintext)) == plaintext

    @pytest.mark.parametrize("stored", [None, "", "not-a-fernet-token"])
    def test_reveal_secret_unreadable_returns_none(self, stored: str | None) -> None:
        assert reveal_secret(stored) is None

    def test_reveal_secret(self) -> None:
        assert reveal_secret(encrypt_secret("APP_USR-123")) == "APP_USR-123"


# ---------------------------------------------------------------------------
# app.core.security
# ---------------------------------------------------------------------------


class TestSecurityModule:
    """Tests for identifiers and HMAC helpers."""

    def test_generate_session_id(self) -> None:
        sid = generate_session_id()
        assert isinstance(sid, str)
        assert len(sid) > 0
        assert sid != generate_session_id()

    def test_generate_order_number_format(self) -> None:
        number = generate_order_number()

        assert re.fullmatch(r"ORD-\d{6}-[0-9A-F]{12}", number)

    def test_generate_order_number_unique(self) -> None:
        assert len({generate_order_number() for _ in range(50)}) == 50

    def test_compute_signature_matches_hmac(self) -> None:
        payload = b'{"id":"evt_1"}'
        expected = hmac.new(b"whsec", payload, hashlib.sha256).hexdigest()

        assert compute_signature(payload, "whsec") == expected

    def test_verify_signature_valid(self) -> None:
        payload = b"body"
        assert verify_signature(payload, compute_signature(payload, "s3cret"), "s3cret")

    @pytest.mark.parametrize(
        ("payload", "secret"),
        [(b"other body", "s3cret"), (b"body", "wrong-secret")],
    )
    def test_verify_signature_invalid(self, payload: bytes, secret: str) -> None:
        signature = compute_signature(b"body", "s3cret")

        assert verify_signature(payload, signature, secret) is False

    def test_parse_signature_header(self) -> None:
        parsed = parse_signature_header("t=1700000000, v1=abc, v1=def,junk, v0=zzz")

        assert parsed == {"t": ["1700000000"], "v1": ["abc", "def"], "v0": ["zzz"]}

    def test_parse_signature_header_keeps_equals_in_value(self) -> None:
        assert parse_signature_header("ts=1,v1=a=b") == {"ts": ["1"], "v1": ["a=b"]}


# ---------------------------------------------------------------------------
# app.core.money
# ---------------------------------------------------------------------------


class TestMoney:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("49.9", Decimal("49.90")),
            ("0.005", Decimal("0.01")),
            ("2.675", Decimal("2.68")),
            (10, Decimal("10.00")),
            (19.99, Decimal("19.99")),
            (Decimal("1.234"), Decimal("1.23")),
        ],
    )
    def test_to_money_rounds_half_up(self, value: object, expected: Decimal) -> None:
        assert to_money(value) == expected  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(Decimal("114.80"), 11480), (Decimal("0.01"), 1), (Decimal("49.995"), 5000)],
    )
    def test_to_cents(self, value: Decimal, expected: int) -> None:
        assert to_cents(value) == expected
