from __future__ import annotations

import hmac
import json
from hashlib import sha256

from payment_relay.webhooks.signing import sign, verify

PAYLOAD = json.dumps({"test": "data"}, separators=(",", ":")).encode("utf-8")


def test_sign_is_hex_hmac_sha256():
    expected = hmac.new(b"test-secret", PAYLOAD, sha256).hexdigest()
    assert sign(PAYLOAD, "test-secret") == expected
    assert len(sign(PAYLOAD, "test-secret")) == 64


def test_sign_is_deterministic():
    assert sign(PAYLOAD, "test-secret") == sign(PAYLOAD, "test-secret")


def test_different_secrets_give_different_signatures():
    secrets = [f"secret-{i}" for i in range(50)]
    signatures = {sign(PAYLOAD, s) for s in secrets}
    assert len(signatures) == len(secrets)


def test_different_payloads_give_different_signatures():
    assert sign(PAYLOAD, "s") != sign(PAYLOAD + b" ", "s")


def test_sign_accepts_empty_and_binary_input():
    assert sign(b"", "") == hmac.new(b"", b"", sha256).hexdigest()
    assert sign(bytes(range(256)), "été")


def test_verify_round_trip_and_tampering():
    signature = sign(PAYLOAD, "s")
    assert verify(PAYLOAD, "s", signature)
    assert verify(PAYLOAD, "s", signature.upper())
    assert not verify(PAYLOAD, "other", signature)
    assert not verify(PAYLOAD.replace(b"data", b"dat4"), "s", signature)
