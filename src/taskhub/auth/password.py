"""Password hashing utilities (bcrypt).

Learn: bcrypt salts every hash and embeds its cost factor in the hash
itself ("$2b$12$..."). That lets needs_rehash() spot hashes made with a
lower cost than the one configured today, and UserService.authenticate
upgrades them transparently on the next successful login.

bcrypt only looks at the first 72 bytes of a password, so input is cut
there explicitly rather than relying on library behaviour.
"""

import bcrypt

BCRYPT_ROUNDS = 12
_MAX_PASSWORD_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_MAX_PASSWORD_BYTES]


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode("ascii"))
    except (ValueError, TypeError):
        return False


def hash_rounds(password_hash: str) -> int:
    """Cost factor stored in a bcrypt hash ("$2b$<rounds>$..."), 0 if unreadable."""
    parts = password_hash.split("$")
    try:
        return int(parts[2])
    except (IndexError, ValueError):
        return 0


def needs_rehash(password_hash: str, rounds: int = BCRYPT_ROUNDS) -> bool:
    return hash_rounds(password_hash) < rounds
