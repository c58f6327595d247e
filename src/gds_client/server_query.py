"""
Paginated enumeration of QueryServers results.

The server keeps no per-enumeration state: every page request carries the
cursor (last index reset time seen, next record id to return). The cursor is
an immutable QueryCursor advanced by the pure function advance_cursor(); the
async generator iterate_servers() threads it through successive page fetches.

Rules:
- a reset time strictly newer than a previously seen non-zero one means the
  server rebuilt its index; record ids are no longer comparable and the
  enumeration fails with EnumerationInvalidated
- a non-empty page moves the cursor to one past its last record id
- the first empty page ends the enumeration
"""

from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable, Optional

from .enums import ErrorCode
from .exceptions import EnumerationInvalidated
from .models import EPOCH_ZERO, QueryCursor, ServerOnNetworkEntry, ServerQuery

PageFetcher = Callable[
    [QueryCursor, ServerQuery],
    Awaitable[tuple[Optional[datetime], list[ServerOnNetworkEntry]]],
]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_unset(reset_time: Optional[datetime]) -> bool:
    """True for a missing or null (1601-01-01 or earlier) reset time."""
    return reset_time is None or _as_utc(reset_time) <= EPOCH_ZERO


def advance_cursor(
    cursor: QueryCursor,
    reset_time: Optional[datetime],
    entries: list[ServerOnNetworkEntry],
) -> QueryCursor:
    """
    Compute the cursor for the next page.

    Args:
        cursor: Cursor the page was requested with
        reset_time: Index reset time reported with the page (None if absent)
        entries: Entries of the page, in server order

    Returns:
        The advanced cursor

    Raises:
        EnumerationInvalidated: The server index was reset mid-enumeration
    """
    last_reset_time = cursor.last_reset_time

    if reset_time is not None:
        reset_time = _as_utc(reset_time)
        if not is_unset(last_reset_time) and _as_utc(last_reset_time) < reset_time:
            raise EnumerationInvalidated(
                code=ErrorCode.INDEX_RESET.value,
                message="Enumeration cannot continue because the server has reset its index.",
                details={
                    "last_reset_time": _as_utc(last_reset_time).isoformat(),
                    "reset_time": reset_time.isoformat(),
                    "starting_record_id": cursor.starting_record_id,
                },
            )
        last_reset_time = reset_time

    starting_record_id = cursor.starting_record_id
    if entries:
        starting_record_id = entries[-1].record_id + 1

    return QueryCursor(last_reset_time=last_reset_time, starting_record_id=starting_record_id)


async def iterate_servers(
    fetch_page: PageFetcher,
    query: ServerQuery,
) -> AsyncIterator[ServerOnNetworkEntry]:
    """
    Yield every matching server, fetching pages lazily.

    The returned generator is single-use; start a new one to enumerate again.
    Stopping early needs no cleanup.
    """
    cursor = QueryCursor()
    while True:
        reset_time, entries = await fetch_page(cursor, query)
        cursor = advance_cursor(cursor, reset_time, entries)
        if not entries:
            return
        for entry in entries:
            yield entry
