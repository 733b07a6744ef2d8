"""Password hashing backed by passlib."""

from __future__ import annotations

from passlib.context import CryptContext


class PasswordHasher:
    """Salted PBKDF2-SHA256 hashing with a tunable round count (the work factor)."""

    def __init__(self, rounds: int) -> None:
        self._context = CryptContext(
            schemes=["pbkdf2_sha256"],
            deprecated="auto",
            pbkdf2_sha256__default_rounds=rounds,
        )

    def hash(self, plaintext: str) -> str:
        return self._context.hash(plaintext)

    def verify(self, plaintext: str, password_hash: str | None) -> bool:
        """Return ``True`` when ``plaintext`` matches ``password_hash``.

        A missing hash still costs one hash computation so that unknown
        accounts take as long to reject as wrong passwords.
        """
        if not password_hash:
            self._context.dummy_verify()
            return False
        return self._context.verify(plaintext, password_hash)

    def dummy_verify(self) -> None:
        self._context.dummy_verify()
