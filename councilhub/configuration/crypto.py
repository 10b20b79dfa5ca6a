"""AES-256-GCM helpers for credentials kept in the settings table."""
import base64
import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from councilhub.settings import settings
from councilhub.utils import ServiceError

IV_LENGTH = 12
TAG_LENGTH = 16


class DecryptionError(ServiceError):
    pass


def _key() -> bytes:
    secret = settings.encryption_key or settings.jwt_secret
    return hashlib.sha256(secret.encode("utf-8")).digest()


def encrypt(plaintext: str) -> str:
    """Returns ``iv:tag:ciphertext``, each part base64 encoded."""
    iv = os.urandom(IV_LENGTH)
    sealed = AESGCM(_key()).encrypt(iv, plaintext.encode("utf-8"), None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return ":".join(
        base64.b64encode(part).decode("ascii") for part in (iv, tag, ciphertext)
    )


def decrypt(token: str) -> str:
    try:
        iv, tag, ciphertext = (base64.b64decode(part) for part in token.split(":"))
    except ValueError as exc:
        raise DecryptionError("Invalid encrypted value format") from exc
    try:
        plain = AESGCM(_key()).decrypt(iv, ciphertext + tag, None)
    except InvalidTag as exc:
        raise DecryptionError("Encrypted value could not be authenticated") from exc
    return plain.decode("utf-8")
