from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC now; the storage representation of every timestamp we write."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_timestamp(value: datetime) -> datetime:
    """Convert to naive UTC. Naive input is taken to already be UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_timestamp(raw: str) -> datetime:
    """
    Parse an ISO-8601 timestamp (as sent by browsers, e.g. `2024-01-01T00:00:00.000Z`)
    into naive UTC. Raises ValueError on anything unparseable.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise ValueError("timestamp must be a non-empty string")
    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return normalize_timestamp(datetime.fromisoformat(text))
    except OverflowError as e:
        # e.g. year 1 with a positive offset falls before datetime.min in UTC
        raise ValueError(f"timestamp out of range: {raw!r}") from e


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    # Keep full microsecond precision: clients echo this value back as a concurrency token.
    return normalize_timestamp(value).isoformat() + "Z"
