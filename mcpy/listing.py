"""Listing engine shared by ``ls`` and ``diff``."""

import json
import logging
from datetime import datetime
from typing import Any, Dict, Iterator

from mcpy.clients.client import Client
from mcpy.entry import Entry, ListItem
from mcpy.exceptions import (
    BrokenSymlinkError,
    ClientError,
    SymlinkCycleError,
    is_recoverable_listing_error,
)

log = logging.getLogger(__name__)

PRINT_DATE = "%Y-%m-%d %H:%M:%S %Z"


def do_list(client: Client, recursive: bool, multi_source: bool = False) -> Iterator[ListItem]:
    """List everything under the client's URL.

    The stream is finite and single-pass. Broken or cyclic symlinks and
    paths that vanish or cannot be read mid-walk are logged and skipped.
    Any other error is yielded as the last item.

    Args:
        client: Backend bound to the URL to list
        recursive: Whether to list the whole subtree
        multi_source: Whether several URLs are listed together; entries of a
            directory root are then prefixed by the root's own name

    Yields:
        ListItem objects; only the final one can carry an error
    """
    try:
        root = client.stat()
    except ClientError as e:
        yield ListItem(error=e)
        return

    items = client.list(recursive)
    try:
        for item in items:
            if item.error is not None:
                error = item.error
                if not is_recoverable_listing_error(error, client.filesystem):
                    yield ListItem(entry=item.entry, error=error)
                    return
                if isinstance(error, BrokenSymlinkError):
                    log.warning("Unable to list broken link. %s", error)
                elif isinstance(error, SymlinkCycleError):
                    log.warning("Unable to list too many levels link. %s", error)
                elif item.entry is not None and item.entry.is_directory and item.entry.symlink:
                    log.warning("Unable to list broken folder link. %s", error)
                else:
                    log.warning("Unable to list. %s", error)
                continue

            entry = item.entry
            if multi_source and root.is_directory:
                entry = entry.with_name(f"{root.base_name}/{entry.name}")
            yield ListItem(entry=entry)
    finally:
        close = getattr(items, "close", None)
        if close is not None:
            close()


def _format_size(size_bytes: int) -> str:
    """Format size in bytes to a human-readable string."""
    if size_bytes < 1024:
        return f"{size_bytes}B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f}KiB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f}MiB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.1f}GiB"


def _local_time(value: datetime) -> datetime:
    return value.astimezone() if value.tzinfo else value


def format_entry(entry: Entry) -> str:
    """One ``ls`` line: ``[time] size name``."""
    when = _local_time(entry.modified_time).strftime(PRINT_DATE).strip() if entry.modified_time else ""
    return f"[{when}] {_format_size(entry.size):>9} {entry.display_name()}"


def entry_record(entry: Entry) -> Dict[str, Any]:
    return {
        "type": "folder" if entry.is_directory else "file",
        "lastModified": entry.modified_time.isoformat() if entry.modified_time else None,
        "size": entry.size,
        "name": entry.display_name(),
    }


def entry_json(entry: Entry) -> str:
    return json.dumps(entry_record(entry))
