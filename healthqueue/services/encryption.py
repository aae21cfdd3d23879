from functools import lru_cache
from cryptography.fernet import Fernet, InvalidToken, MultiFernet
from ..config import get_settings


@lru_cache
def _build_fernet(keys: str) -> MultiFernet:
    # Comma-separated keys, newest first; older keys still decrypt during rotation.
    return MultiFernet([Fernet(k.strip().encode("utf-8")) for k in keys.split(",") if k.strip()])


def _get_fernet() -> MultiFernet:
    settings = get_settings()
    if not settings.FIELD_ENCRYPTION_KEY:
        raise RuntimeError("FIELD_ENCRYPTION_KEY is not set")
    return _build_fernet(settings.FIELD_ENCRYPTION_KEY)


def encrypt_value(value: str) -> str:
    if value == "":
        return value
    return _get_fernet().encrypt(value.encode("utf-8")).decode("utf-8")


def decrypt_value(value: str) -> str:
    if value == "":
        return value
    try:
        return _get_fernet().decrypt(value.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        raise RuntimeError("Decryption failed: invalid token")
