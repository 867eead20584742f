"""Password hashing and verification."""

from __future__ import annotations

import bcrypt

# bcrypt only reads the first 72 bytes of its input; request models cap
# passwords well below that in characters, this keeps multibyte input safe.
BCRYPT_MAX_BYTES = 72


def _encode(plaintext: str) -> bytes:
    return plaintext.encode("utf-8")[:BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Salted bcrypt hashing with a dummy verification for unknown accounts."""

    def __init__(self, rounds: int = 12) -> None:
        """Configure the bcrypt cost factor and precompute the dummy hash."""
        self._rounds = rounds
        self._dummy_hash = self.hash("storefront-timing-dummy")

    def hash(self, plaintext: str) -> str:
        """Return a bcrypt hash for storage. Plaintext is never persisted."""
        return bcrypt.hashpw(_encode(plaintext), bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    def verify(self, plaintext: str, hashed: str) -> bool:
        """Return ``True`` when ``plaintext`` matches ``hashed``.

        A corrupt stored hash verifies as ``False`` rather than raising.
        """
        try:
            return bcrypt.checkpw(_encode(plaintext), hashed.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def verify_dummy(self, plaintext: str) -> None:
        """Spend one verification's worth of work when there is no account to check.

        Callers run this on a lookup miss so that "unknown email" and "wrong
        password" take the same time.
        """
        self.verify(plaintext, self._dummy_hash)
