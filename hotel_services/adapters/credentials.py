"""
Credential helpers for access provisioning.

Temporary passwords come from ``secrets``; hashing is delegated to
werkzeug so the authentication subsystem can verify with
``check_password_hash``.
"""

import secrets
import string

from werkzeug.security import generate_password_hash

_ALPHABET = string.ascii_lowercase + string.digits


def generate_temporary_credential() -> str:
    """``Temp<8 random chars>A1!`` -- satisfies upper/lower/digit/symbol rules."""
    body = "".join(secrets.choice(_ALPHABET) for _ in range(8))
    return f"Temp{body}A1!"


class WerkzeugCredentialHasher:
    def __init__(self, method: str | None = None) -> None:
        self._method = method

    def hash_credential(self, plaintext: str) -> str:
        if self._method is None:
            return generate_password_hash(plaintext)
        return generate_password_hash(plaintext, method=self._method)
