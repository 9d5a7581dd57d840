import bcrypt

# Stored values starting with one of these are bcrypt hashes; anything else is legacy plaintext.
BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")

# bcrypt only looks at the first 72 bytes of its input.
MAX_PASSWORD_BYTES = 72


def _encode(password: str) -> bytes | None:
    raw = password.encode("utf-8")
    return raw if len(raw) <= MAX_PASSWORD_BYTES else None


def hash_password(password: str) -> str:
    """Hash a person's password for the `person.password` column."""
    if not password:
        raise ValueError("Password is required")
    raw = _encode(password)
    if raw is None:
        raise ValueError(f"Password must be {MAX_PASSWORD_BYTES} bytes or less")
    return bcrypt.hashpw(raw, bcrypt.gensalt()).decode("utf-8")


def is_password_hashed(stored: str | None) -> bool:
    return bool(stored) and stored.startswith(BCRYPT_PREFIXES)


def verify_password(password: str, stored_hash: str) -> bool:
    if not password or not stored_hash:
        return False
    raw = _encode(password)
    if raw is None:
        return False
    try:
        return bcrypt.checkpw(raw, stored_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a usable bcrypt hash.
        return False
