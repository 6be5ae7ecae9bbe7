import base64
import os

import pytest

from chainvault.common.crypto import (
    KDF_ITERATIONS,
    NONCE_LENGTH,
    SALT_LENGTH,
    TAG_LENGTH,
    CryptoEngine,
    decrypt_data,
    encrypt_data,
    is_valid_secret_format,
)
from chainvault.common.exceptions import EncryptionError

HEADER = SALT_LENGTH + NONCE_LENGTH


@pytest.fixture
def secret() -> str:
    return base64.b64encode(os.urandom(32)).decode()


def _flip_byte(payload: str, index: int) -> str:
    raw = bytearray(base64.b64decode(payload))
    raw[index] ^= 0x01
    return base64.b64encode(bytes(raw)).decode()


@pytest.mark.parametrize(
    "plaintext",
    [
        "",
        "hello",
        '{"diagnosis": "healthy", "date": "2025-01-15"}',
        "x" * 8192,
        "héllo wörld ✓ 日本語 🚀",
    ],
)
def test_round_trip(plaintext: str, secret: str) -> None:
    assert CryptoEngine.decrypt(CryptoEngine.encrypt(plaintext, secret), secret) == plaintext


def test_module_aliases(secret: str) -> None:
    assert decrypt_data(encrypt_data("alias", secret), secret) == "alias"


def test_encrypt_is_not_deterministic(secret: str) -> None:
    first = CryptoEngine.encrypt("same input", secret)
    second = CryptoEngine.encrypt("same input", secret)
    assert first != second

    raw_first = base64.b64decode(first)
    raw_second = base64.b64decode(second)
    assert raw_first[:SALT_LENGTH] != raw_second[:SALT_LENGTH]
    assert raw_first[SALT_LENGTH:HEADER] != raw_second[SALT_LENGTH:HEADER]


def test_payload_layout(secret: str) -> None:
    plaintext = "layout check"
    raw = base64.b64decode(CryptoEngine.encrypt(plaintext, secret))
    assert len(raw) == HEADER + len(plaintext.encode()) + TAG_LENGTH


def test_kdf_iterations_resist_brute_force() -> None:
    assert KDF_ITERATIONS >= 100_000  # noqa: PLR2004


def test_wrong_secret_rejected(secret: str) -> None:
    other = base64.b64encode(os.urandom(32)).decode()
    payload = CryptoEngine.encrypt("top secret", secret)
    with pytest.raises(EncryptionError):
        CryptoEngine.decrypt(payload, other)


@pytest.mark.parametrize("region", ["salt", "nonce", "ciphertext", "tag"])
def test_tampered_byte_rejected(region: str, secret: str) -> None:
    payload = CryptoEngine.encrypt("do not touch", secret)
    total = len(base64.b64decode(payload))
    index = {
        "salt": 0,
        "nonce": SALT_LENGTH + 3,
        "ciphertext": HEADER + 2,
        "tag": total - 1,
    }[region]
    with pytest.raises(EncryptionError):
        CryptoEngine.decrypt(_flip_byte(payload, index), secret)


def test_every_ciphertext_byte_is_protected(secret: str) -> None:
    payload = CryptoEngine.encrypt("abc", secret)
    total = len(base64.b64decode(payload))
    for index in range(HEADER, total):
        with pytest.raises(EncryptionError):
            CryptoEngine.decrypt(_flip_byte(payload, index), secret)


def test_changed_base64_character_rejected(secret: str) -> None:
    payload = CryptoEngine.encrypt("hello world", secret)
    index = len(payload) // 2 + 10
    replacement = "A" if payload[index] != "A" else "B"
    tampered = payload[:index] + replacement + payload[index + 1 :]
    with pytest.raises(EncryptionError):
        CryptoEngine.decrypt(tampered, secret)


@pytest.mark.parametrize("plaintext", ["a", "ab"])
def test_padding_bits_are_protected(plaintext: str, secret: str) -> None:
    """Every character before the padding matters, including its unused bits."""
    payload = CryptoEngine.encrypt(plaintext, secret)
    assert payload.endswith("=")
    last = len(payload.rstrip("=")) - 1
    alphabet = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
    for replacement in alphabet.replace(payload[last], ""):
        tampered = payload[:last] + replacement + payload[last + 1 :]
        with pytest.raises(EncryptionError):
            CryptoEngine.decrypt(tampered, secret)


def test_truncated_payload_rejected(secret: str) -> None:
    raw = base64.b64decode(CryptoEngine.encrypt("truncate me", secret))
    for cut in (len(raw) - 1, HEADER + TAG_LENGTH - 1, SALT_LENGTH, 0):
        truncated = base64.b64encode(raw[:cut]).decode()
        with pytest.raises(EncryptionError):
            CryptoEngine.decrypt(truncated, secret)


def test_invalid_base64_rejected(secret: str) -> None:
    with pytest.raises(EncryptionError):
        CryptoEngine.decrypt("not base64 at all!", secret)


def test_failures_are_indistinguishable(secret: str) -> None:
    payload = CryptoEngine.encrypt("oracle", secret)
    other = base64.b64encode(os.urandom(32)).decode()

    with pytest.raises(EncryptionError) as wrong_key:
        CryptoEngine.decrypt(payload, other)
    with pytest.raises(EncryptionError) as tampered:
        CryptoEngine.decrypt(_flip_byte(payload, HEADER), secret)

    assert str(wrong_key.value) == str(tampered.value) == "Decryption failed"


def test_encrypt_requires_secret() -> None:
    with pytest.raises(EncryptionError):
        CryptoEngine.encrypt("data", "")


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (base64.b64encode(os.urandom(32)).decode(), True),
        ("ab" * 32, True),
        ("", False),
        (None, False),
        ("not base64!", False),
        ("abc", False),
        ("  ", False),
        ("====", False),
    ],
)
def test_is_valid_secret_format(value: str | None, expected: bool) -> None:  # noqa: FBT001
    assert is_valid_secret_format(value) is expected
