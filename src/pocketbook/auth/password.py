"""Password hashing utilities.

Learn: Uses bcrypt for secure password hashing. bcrypt automatically
handles salting and is resistant to rainbow table attacks.
The work factor (rounds=12) takes ~100-250ms per hash on modern hardware,
which is slow enough to hurt brute force and fast enough for login.
Tests pass a lower cost to keep the suite quick.
"""

import bcrypt

# bcrypt only looks at the first 72 bytes of the password
_BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    """One-way salted password hashing with a fixed cost factor."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """Hash a password with bcrypt.

        Learn: bcrypt includes a random salt automatically, so hashing the
        same password twice yields two different strings starting with "$2b$".
        """
        pw_bytes = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against its hash. Never raises."""
        try:
            pw_bytes = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
            hash_bytes = password_hash.encode("utf-8")
            return bcrypt.checkpw(pw_bytes, hash_bytes)
        except (ValueError, TypeError, AttributeError):
            return False
