import logging

import bcrypt

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of its input.
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """bcrypt password hashing.

    ``verify`` is deliberately slow and should run in a worker thread
    (``run_in_threadpool``) rather than on the event loop.
    """

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        self._dummy_hash: bytes | None = None

    def hash(self, password: str) -> str:
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValueError("password_too_long")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Check a plaintext password against a stored hash (constant time)."""
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            self.dummy_verify()
            return False
        try:
            return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
        except ValueError:
            logger.error("Stored password hash is not a valid bcrypt hash")
            return False

    def dummy_verify(self) -> None:
        """Spend the same time as a real verification when there is no hash to check."""
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(
                b"timing-equalizer", bcrypt.gensalt(rounds=self.rounds)
            )
        bcrypt.checkpw(b"not-the-password", self._dummy_hash)
