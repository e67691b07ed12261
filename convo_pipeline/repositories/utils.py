"""Utility functions for repository operations."""

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Union

import asyncpg

from convo_pipeline.errors import PersistenceError


def ensure_json(value: Optional[Union[str, dict, list]]) -> Optional[Union[dict, list]]:
    """
    Normalize JSONB values from database to Python dict/list.

    asyncpg can return JSONB as:
    - dict/list (when codec is configured)
    - str (default behavior)
    - None (NULL)

    Raises:
        TypeError: If value is an unexpected type
        json.JSONDecodeError: If string is not valid JSON
    """
    if value is None:
        return None

    if isinstance(value, (dict, list)):
        return value

    if isinstance(value, str):
        return json.loads(value)

    raise TypeError(
        f"Expected str, dict, list, or None for JSONB value, got {type(value).__name__}"
    )


def to_jsonb(value: Any) -> Optional[str]:
    """Serialize a Python value for a ``$n::jsonb`` parameter."""
    if value is None:
        return None
    return json.dumps(value, default=str)


@asynccontextmanager
async def translate_db_errors(action: str) -> AsyncIterator[None]:
    """Re-raise driver errors as PersistenceError with the underlying message."""
    try:
        yield
    except asyncpg.PostgresError as e:
        raise PersistenceError(f"Failed to {action}", cause=e) from e
    except (OSError, asyncpg.InterfaceError) as e:
        raise PersistenceError(f"Failed to {action}", cause=e) from e
