from datetime import datetime, UTC


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what TIMESTAMP columns hand back."""
    return datetime.now(UTC).replace(tzinfo=None)
