"""Utility functions for gokigen."""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, TypeVar

from gokigen.errors import OperationTimeoutError

T = TypeVar("T")


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_path(data_dir: str | None = None) -> Path:
    """
    Get the gokigen data directory.

    Args:
        data_dir: Optional override. Defaults to ~/.gokigen.

    Returns:
        Expanded and ensured data directory path.
    """
    if data_dir:
        path = Path(data_dir).expanduser()
    else:
        path = Path.home() / ".gokigen"
    return ensure_dir(path)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def with_timeout(awaitable: Awaitable[T], seconds: float | None, what: str = "operation") -> T:
    """
    Race an awaitable against a deadline.

    Args:
        awaitable: Coroutine or future to await.
        seconds: Deadline in seconds. None or <= 0 disables the deadline.
        what: Short label used in the error message.

    Returns:
        The awaitable's result.

    Raises:
        OperationTimeoutError: If the deadline passes first.
    """
    if not seconds or seconds <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as e:
        raise OperationTimeoutError(f"{what} timed out after {seconds:g}s") from e
