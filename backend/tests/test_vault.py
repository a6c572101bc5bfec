import re

import pytest

from agentchat.errors import (
    AuthenticationFailedError,
    KeyConfigurationError,
    MalformedCredentialError,
)
from agentchat.services.vault import CredentialVault, generate_encryption_key
from tests.fakes import TEST_ENCRYPTION_KEY


def _flip(hex_char: str) -> str:
    return "1" if hex_char == "0" else "0"


@pytest.mark.parametrize("plaintext", ["sk-test-123", "sk-ant-api03-" + "x" * 90, "clé-ünïcødé-🔑"])
def test_encrypt_roundtrip(vault, plaintext):
    assert vault.decrypt(vault.encrypt(plaintext)) == plaintext


def test_encrypt_emits_three_lowercase_hex_segments(vault):
    token = vault.encrypt("sk-test-123")

    iv, tag, ciphertext = token.split(":")
    assert re.fullmatch(r"[0-9a-f]{32}", iv)
    assert re.fullmatch(r"[0-9a-f]{32}", tag)
    assert re.fullmatch(r"[0-9a-f]+", ciphertext)
    assert vault.is_valid_format(token)


def test_encrypt_uses_fresh_iv(vault):
    first = vault.encrypt("sk-test-123")
    second = vault.encrypt("sk-test-123")

    assert first.split(":")[0] != second.split(":")[0]
    assert first != second


def test_encrypt_rejects_empty(vault):
    with pytest.raises(ValueError):
        vault.encrypt("")


@pytest.mark.parametrize("segment", [0, 1, 2])
def test_tampering_any_character_fails_authentication(vault, segment):
    token = vault.encrypt("sk-test-123")
    parts = token.split(":")

    for position in range(len(parts[segment])):
        tampered = list(parts)
        chars = list(tampered[segment])
        chars[position] = _flip(chars[position])
        tampered[segment] = "".join(chars)

        with pytest.raises(AuthenticationFailedError):
            vault.decrypt(":".join(tampered))


def test_decrypt_with_wrong_key_fails_authentication(vault):
    token = vault.encrypt("sk-test-123")
    other = CredentialVault("another-encryption-key-0123456789abcdef")

    with pytest.raises(AuthenticationFailedError):
        other.decrypt(token)


@pytest.mark.parametrize(
    "value",
    [
        "",
        "abcdef",
        "abcd:ef01",
        "ab:cd:ef:01",
        "zz:00:11",
        "00::11",
        "00:11:",
        "00:11:gg",
        "00 :11:22",
    ],
)
def test_malformed_values_are_rejected(vault, value):
    assert not vault.is_valid_format(value)
    with pytest.raises(MalformedCredentialError):
        vault.decrypt(value)


def test_decrypt_accepts_uppercase_hex(vault):
    token = vault.encrypt("sk-test-123")

    assert vault.is_valid_format(token.upper())
    assert vault.decrypt(token.upper()) == "sk-test-123"


def test_decrypt_rejects_odd_length_hex(vault):
    iv, tag, ciphertext = vault.encrypt("sk-test-123").split(":")

    with pytest.raises(MalformedCredentialError):
        vault.decrypt(f"{iv}:{tag}:{ciphertext}0")


def test_decrypt_rejects_truncated_tag(vault):
    iv, tag, ciphertext = vault.encrypt("sk-test-123").split(":")

    with pytest.raises(MalformedCredentialError):
        vault.decrypt(f"{iv}:{tag[:-2]}:{ciphertext}")


@pytest.mark.parametrize("key", [None, "", "too-short"])
def test_missing_or_short_key_is_a_configuration_error(key):
    vault = CredentialVault(key)

    with pytest.raises(KeyConfigurationError):
        vault.encrypt("sk-test-123")
    with pytest.raises(KeyConfigurationError):
        vault.decrypt("00:11:22")


def test_from_env_reads_encryption_key(monkeypatch):
    monkeypatch.setenv("API_KEY_ENCRYPTION_KEY", TEST_ENCRYPTION_KEY)

    vault = CredentialVault.from_env()

    assert CredentialVault(TEST_ENCRYPTION_KEY).decrypt(vault.encrypt("sk-env")) == "sk-env"


def test_generated_key_is_usable():
    key = generate_encryption_key()

    # Every character of the generated key reaches the cipher
    assert len(key.encode("utf-8")) == 32
    assert re.fullmatch(r"[A-Za-z0-9_-]{32}", key)
    assert generate_encryption_key() != key
    vault = CredentialVault(key)
    assert vault.decrypt(vault.encrypt("sk-test-123")) == "sk-test-123"
