"""
Column defaults and serialization helpers shared by the models.
"""
import uuid
from datetime import datetime, date, timezone


def new_id():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


def isoformat(value):
    """Render a date/datetime column for JSON, passing None through."""
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value
