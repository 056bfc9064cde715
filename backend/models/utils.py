"""Shared utilities for ORM models."""

import uuid


def generate_uuid() -> str:
    """Return a random UUID4 string for use as a String(36) primary key."""
    return str(uuid.uuid4())
