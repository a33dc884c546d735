"""
Firebase SDK helpers.

NOTE: For firebase_admin SDK, we use positional arguments which still work.
The deprecation warning is just a warning - the functionality is still supported.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Optional
import asyncio


def where_filter(query, field_path: str, op_string: str, value):
    """
    Helper function for Firestore queries.
    
    Usage:
        query = where_filter(collection, "type", "==", "fire")
        query = where_filter(query, "status", "in", ["pending", "acknowledged"])
    """
    return query.where(field_path, op_string, value)


async def run_blocking(fn: Callable[..., Any], *args) -> Any:
    """Run a synchronous SDK call in the thread pool so the event loop stays free."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, fn, *args)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Firestore hands back aware datetimes; in-process values may be naive."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
