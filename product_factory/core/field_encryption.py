"""Field-level encryption for provider credentials stored in the database."""

from __future__ import annotations

from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from product_factory.config import settings


@lru_cache(maxsize=1)
def get_provider_key_cipher() -> Fernet:
    """Return the Fernet cipher used for provider key encryption."""
    return Fernet(settings.get_provider_key_encryption_key())


def reset_provider_key_cipher_cache() -> None:
    """Drop the cached cipher (tests change the key material)."""
    get_provider_key_cipher.cache_clear()


def encrypt_provider_key(value: str) -> str:
    return get_provider_key_cipher().encrypt(value.encode("utf-8")).decode("utf-8")


def decrypt_provider_key(value: str) -> str:
    try:
        return get_provider_key_cipher().decrypt(value.encode("utf-8")).decode("utf-8")
    except InvalidToken as exc:
        raise ValueError("invalid_provider_key_ciphertext") from exc
