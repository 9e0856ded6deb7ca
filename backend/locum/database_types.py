"""
Column types shared by the lifecycle models.

SQLite (tests) and PostgreSQL (production) disagree on UUIDs and JSON, so
both are wrapped here.
"""
import json
import uuid
from datetime import datetime, timezone

from sqlalchemy import TypeDecorator, CHAR, Text
from sqlalchemy.dialects.postgresql import UUID, JSONB


def utcnow() -> datetime:
    """Naive UTC timestamp, the convention for every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class GUID(TypeDecorator):
    """
    UUID column: native UUID on PostgreSQL, CHAR(36) elsewhere.
    
    Always hands back uuid.UUID instances so identifiers compare equal
    regardless of backend.
    """
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, uuid.UUID):
            value = uuid.UUID(str(value))
        if dialect.name == 'postgresql':
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


class JSONDocument(TypeDecorator):
    """
    Opaque JSON payload: JSONB on PostgreSQL, serialized TEXT elsewhere.
    
    The engine writes these (notification metadata, verification fields)
    but never interprets them.
    """
    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(Text())

    def process_bind_param(self, value, dialect):
        if value is None or dialect.name == 'postgresql':
            return value
        return json.dumps(value, default=str)

    def process_result_value(self, value, dialect):
        if value is None or dialect.name == 'postgresql':
            return value
        return json.loads(value)
