"""Mock builders for Motor collections."""
from unittest.mock import AsyncMock, MagicMock


def cursor_returning(items):
    """Motor-like cursor supporting sort/skip/limit chaining and to_list."""
    cursor = MagicMock()
    cursor.sort = MagicMock(return_value=cursor)
    cursor.skip = MagicMock(return_value=cursor)
    cursor.limit = MagicMock(return_value=cursor)
    cursor.to_list = AsyncMock(return_value=items)
    return cursor


def update_result(matched=1, modified=1, upserted_id=None):
    result = MagicMock()
    result.matched_count = matched
    result.modified_count = modified
    result.upserted_id = upserted_id
    return result


def delete_result(deleted=1):
    result = MagicMock()
    result.deleted_count = deleted
    return result
