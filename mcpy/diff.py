"""Diff engine: merge-join of two listings.

Both listings are ordered by entry key, so the two streams are walked in
lock-step without holding either tree in memory.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Optional

from mcpy.clients.client import Client
from mcpy.compare import ComparePolicy, same_content
from mcpy.entry import Entry, ListItem
from mcpy.exceptions import ClientError
from mcpy.listing import do_list
from mcpy.storage import client_from_url, is_recursive, join_url, strip_recursive

log = logging.getLogger(__name__)

ClientFactory = Callable[[str], Client]


class DiffKind(Enum):
    ONLY_ON_LEFT = "only-on-left"
    ONLY_ON_RIGHT = "only-on-right"
    TYPE_MISMATCH = "type-mismatch"
    SIZE_MISMATCH = "size-mismatch"
    UNCHANGED = "unchanged"
    ERROR = "error"


@dataclass(frozen=True)
class DiffEvent:
    left: str
    right: str
    kind: DiffKind
    error: Optional[ClientError] = None

    def __str__(self) -> str:
        if self.error is not None:
            return f"error: {self.error}"
        if self.kind == DiffKind.ONLY_ON_LEFT:
            return f"'{self.left}' only in first"
        if self.kind == DiffKind.ONLY_ON_RIGHT:
            return f"'{self.right}' only in second"
        if self.kind == DiffKind.TYPE_MISMATCH:
            return f"'{self.left}' and '{self.right}' differ in type"
        if self.kind == DiffKind.SIZE_MISMATCH:
            return f"'{self.left}' and '{self.right}' differ"
        return f"'{self.left}' and '{self.right}' are the same"


class _Side:
    """Cursor over one listing; remembers whether it failed."""

    def __init__(self, url: str, items: Iterator[ListItem], root: Optional[Entry]) -> None:
        self.url = url
        self._items = items
        self.root = root
        self.head: Optional[Entry] = None
        self.error: Optional[ClientError] = None
        self.failed = False

    def advance(self) -> None:
        self.head = None
        self.error = None
        if self.failed:
            return
        item = next(self._items, None)
        if item is None:
            return
        if item.error is not None:
            self.error = item.error
            self.failed = True
            return
        self.head = item.entry

    def object_url(self, entry: Entry) -> str:
        if self.root is not None and not self.root.is_directory:
            return self.url
        return join_url(self.url, entry.name)

    def close(self) -> None:
        close = getattr(self._items, "close", None)
        if close is not None:
            close()


def _open_side(url: str, recursive: bool, client: Client) -> _Side:
    root: Optional[Entry]
    try:
        root = client.stat()
    except ClientError:
        root = None
    return _Side(strip_recursive(url), do_list(client, recursive or is_recursive(url)), root)


def _compare(left: Entry, right: Entry, policy: ComparePolicy) -> DiffKind:
    if left.entry_type != right.entry_type:
        return DiffKind.TYPE_MISMATCH
    if left.is_file and not same_content(left, right, policy):
        return DiffKind.SIZE_MISMATCH
    return DiffKind.UNCHANGED


def do_diff(
    left_url: str,
    right_url: str,
    recursive: bool = False,
    compare: ComparePolicy = ComparePolicy.SIZE,
    verbose: bool = False,
    client_factory: ClientFactory = client_from_url,
) -> Iterator[DiffEvent]:
    """Compare two URLs and yield their differences lazily.

    Each side is listed recursively when ``recursive`` is set or when its own
    URL carries the recursive marker. Two single objects are compared with
    each other regardless of their names.

    An error on one side is reported once; that side then counts as unknown,
    so no presence events are emitted against it, while the other side is
    still enumerated to surface its own errors.

    Args:
        left_url: First URL
        right_url: Second URL
        recursive: List both sides recursively
        compare: How two files of the same name are judged equal
        verbose: Also yield UNCHANGED events
        client_factory: Creates the client for a URL

    Yields:
        DiffEvent objects
    """
    with client_factory(strip_recursive(left_url)) as left_client, \
            client_factory(strip_recursive(right_url)) as right_client:
        left = _open_side(left_url, recursive, left_client)
        right = _open_side(right_url, recursive, right_client)
        try:
            yield from _merge(left, right, compare, verbose)
        finally:
            left.close()
            right.close()


def _merge(left: _Side, right: _Side, policy: ComparePolicy, verbose: bool) -> Iterator[DiffEvent]:
    if (
        left.root is not None and right.root is not None
        and not left.root.is_directory and not right.root.is_directory
    ):
        kind = _compare(left.root, right.root, policy)
        if kind != DiffKind.UNCHANGED or verbose:
            yield DiffEvent(left.url, right.url, kind)
        return

    left.advance()
    right.advance()
    while True:
        for side in (left, right):
            if side.error is not None:
                log.error("Unable to list %s: %s", side.url, side.error)
                yield DiffEvent(left.url, right.url, DiffKind.ERROR, side.error)
                side.error = None

        l, r = left.head, right.head
        if l is None and r is None:
            return

        if l is not None and r is not None:
            if l.key == r.key:
                kind = _compare(l, r, policy)
                if kind != DiffKind.UNCHANGED or verbose:
                    yield DiffEvent(left.object_url(l), right.object_url(r), kind)
                left.advance()
                right.advance()
            elif l.key < r.key:
                yield DiffEvent(left.object_url(l), right.url, DiffKind.ONLY_ON_LEFT)
                left.advance()
            else:
                yield DiffEvent(left.url, right.object_url(r), DiffKind.ONLY_ON_RIGHT)
                right.advance()
            continue

        if l is not None:
            if not right.failed:
                yield DiffEvent(left.object_url(l), right.url, DiffKind.ONLY_ON_LEFT)
            left.advance()
        else:
            if not left.failed:
                yield DiffEvent(left.url, right.object_url(r), DiffKind.ONLY_ON_RIGHT)
            right.advance()
