"""Copy and mirror executor.

A copy is classified once (see ``mcpy.classify``), then every source is
listed and each entry turned into a CopyUnit whose destination is a pure
function of the copy type, the entry's relative path and the target URL.
Units are transferred on a bounded thread pool; results flow back through a
single queue in completion order.

A failed transfer is recorded and the batch goes on. A fatal listing error
stops producing units for that source only.

Example:

    report = copy(["s3://photos/2024/..."], "/backup/photos/")
    for result in report.failed:
        print(result.unit.target_url, result.error)
"""

import logging
import os
import queue
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Union

from mcpy.cancellation import CancellationToken
from mcpy.classify import CopyType, check_copy_syntax
from mcpy.clients.client import Client
from mcpy.compare import ComparePolicy, same_content
from mcpy.entry import Entry
from mcpy.exceptions import (
    ClientError,
    InvalidCopyCombinationError,
    InvalidRangeError,
    IsDirectoryError,
    NotDirectoryError,
    NotFoundError,
    PermissionDeniedError,
    TransferFailedError,
)
from mcpy.listing import do_list
from mcpy.storage import (
    base_name,
    client_from_url,
    container_url,
    join_url,
    parse_url,
    strip_recursive,
)
from mcpy.streams import WindowedReader

log = logging.getLogger(__name__)

ClientFactory = Callable[[str], Client]

# errors that another attempt cannot fix
_PERMANENT = (
    NotFoundError,
    PermissionDeniedError,
    IsDirectoryError,
    NotDirectoryError,
    InvalidRangeError,
)


class CopyOutcome(Enum):
    COPIED = "copied"
    SKIPPED = "skipped"
    FAILED = "failed"


class OverlapPolicy(Enum):
    """Which source wins when several trees write the same destination key."""

    FIRST_WINS = "first_wins"
    LAST_WINS = "last_wins"

    @classmethod
    def parse(cls, value: str) -> "OverlapPolicy":
        try:
            return cls(value.lower())
        except ValueError:
            choices = ", ".join(p.value for p in cls)
            raise ValueError(f"unknown overlap policy '{value}', expected one of {choices}")


@dataclass(frozen=True)
class CopyUnit:
    source_url: str
    source_entry: Entry
    target_url: str


@dataclass
class CopyResult:
    unit: Optional[CopyUnit]
    outcome: CopyOutcome
    error: Optional[ClientError] = None
    source: Optional[str] = None

    @property
    def listing_failed(self) -> bool:
        """The source (or target container) failed before any unit existed."""
        return self.unit is None and self.outcome == CopyOutcome.FAILED


@dataclass
class CopyOptions:
    workers: int = 4
    retries: int = 2
    retry_delay: float = 0.5
    part_size: int = 16 * 1024 * 1024
    mirror: bool = False
    compare: ComparePolicy = ComparePolicy.SIZE_AND_MTIME
    overlap: OverlapPolicy = OverlapPolicy.FIRST_WINS
    create_containers: bool = True
    cancel: Optional[CancellationToken] = None


@dataclass
class CopyReport:
    copied: List[CopyResult] = field(default_factory=list)
    skipped: List[CopyResult] = field(default_factory=list)
    failed: List[CopyResult] = field(default_factory=list)
    listing_errors: List[CopyResult] = field(default_factory=list)

    def add(self, result: CopyResult) -> None:
        if result.listing_failed:
            self.listing_errors.append(result)
        elif result.outcome == CopyOutcome.COPIED:
            self.copied.append(result)
        elif result.outcome == CopyOutcome.SKIPPED:
            self.skipped.append(result)
        else:
            self.failed.append(result)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.listing_errors

    @property
    def bytes_copied(self) -> int:
        return sum(r.unit.source_entry.size for r in self.copied if r.unit is not None)


def _destination(copy_type: CopyType, target: str, relative: str) -> str:
    if copy_type == CopyType.TYPE_A:
        return strip_recursive(target)
    if copy_type == CopyType.TYPE_B:
        return join_url(target, relative.rsplit("/", 1)[-1])
    return join_url(target, relative)


def _source_units(
    copy_type: CopyType,
    source: str,
    target: str,
    client_factory: ClientFactory,
) -> Iterator[Union[CopyUnit, CopyResult]]:
    root_url = strip_recursive(source)
    with client_factory(root_url) as client:
        try:
            root = client.stat()
        except ClientError as e:
            yield CopyResult(None, CopyOutcome.FAILED, e, source=source)
            return

        if not root.is_directory:
            entry = root.with_name(base_name(root_url))
            yield CopyUnit(root_url, entry, _destination(copy_type, target, entry.name))
            return

        if copy_type in (CopyType.TYPE_A, CopyType.TYPE_B):
            error = IsDirectoryError(
                f"'{source}' is a folder, add '...' to copy it recursively", root_url
            )
            yield CopyResult(None, CopyOutcome.FAILED, error, source=source)
            return

        for item in do_list(client, recursive=True):
            if item.error is not None:
                log.error("listing %s failed: %s", source, item.error)
                yield CopyResult(None, CopyOutcome.FAILED, item.error, source=source)
                return
            entry = item.entry
            if entry.is_directory:
                continue
            yield CopyUnit(
                join_url(root_url, entry.name),
                entry,
                _destination(copy_type, target, entry.name),
            )


def prepare_units(
    copy_type: CopyType,
    sources: Sequence[str],
    target: str,
    overlap: OverlapPolicy = OverlapPolicy.FIRST_WINS,
    client_factory: ClientFactory = client_from_url,
) -> Iterator[Union[CopyUnit, CopyResult]]:
    """Resolve every source into CopyUnits.

    Sources are listed one after another in the given order. A failed
    source yields one CopyResult and the next source is attempted. With
    FIRST_WINS, a destination already claimed by an earlier source yields a
    SKIPPED result instead of a unit.
    """
    if copy_type == CopyType.INVALID:
        raise InvalidCopyCombinationError("Invalid source and target combination.")

    claimed: Dict[str, int] = {}
    for index, source in enumerate(sources):
        for produced in _source_units(copy_type, source, target, client_factory):
            if isinstance(produced, CopyResult) or copy_type != CopyType.TYPE_D:
                yield produced
                continue
            owner = claimed.get(produced.target_url)
            if owner is not None and owner != index and overlap == OverlapPolicy.FIRST_WINS:
                log.info(
                    "skipping %s, %s was already written from %s",
                    produced.source_url, produced.target_url, sources[owner],
                )
                yield CopyResult(produced, CopyOutcome.SKIPPED)
                continue
            claimed.setdefault(produced.target_url, index)
            yield produced


def _ensure_container(copy_type: CopyType, target: str, client_factory: ClientFactory) -> None:
    bucket = container_url(target)
    if bucket is not None:
        directory = bucket
    else:
        path = parse_url(target).key
        if copy_type == CopyType.TYPE_A:
            path = os.path.dirname(path.rstrip("/" + os.sep))
        if not path:
            return
        directory = path
    with client_factory(directory) as client:
        client.put_container()


def _is_transient(error: ClientError) -> bool:
    return not isinstance(error, _PERMANENT)


def _transfer_once(unit: CopyUnit, options: CopyOptions, client_factory: ClientFactory) -> CopyOutcome:
    with client_factory(unit.source_url) as src, client_factory(unit.target_url) as dst:
        if options.mirror:
            try:
                existing = dst.stat()
            except NotFoundError:
                existing = None
            if same_content(unit.source_entry, existing, options.compare):
                log.debug("%s is up to date", unit.target_url)
                return CopyOutcome.SKIPPED

        size = unit.source_entry.size
        if size > options.part_size:
            stream = WindowedReader(src.get_partial, size, options.part_size)
        else:
            stream, size, _ = src.get()
        try:
            dst.put(stream, size)
        finally:
            stream.close()
    return CopyOutcome.COPIED


def transfer(
    unit: CopyUnit,
    options: CopyOptions,
    client_factory: ClientFactory = client_from_url,
) -> CopyResult:
    """Copy one unit, retrying transient failures. Never raises ClientError."""
    cancel = options.cancel or CancellationToken()
    if cancel.is_cancelled:
        return CopyResult(unit, CopyOutcome.SKIPPED)

    attempts = max(1, options.retries + 1)
    attempt = 1
    while True:
        try:
            return CopyResult(unit, _transfer_once(unit, options, client_factory))
        except ClientError as e:
            if _is_transient(e) and attempt < attempts:
                log.info(
                    "retrying %s -> %s (%d/%d): %s",
                    unit.source_url, unit.target_url, attempt, attempts - 1, e,
                )
                if cancel.wait(options.retry_delay * attempt):
                    return CopyResult(unit, CopyOutcome.SKIPPED)
                attempt += 1
                continue
            log.error("Unable to copy %s to %s: %s", unit.source_url, unit.target_url, e)
            error = TransferFailedError(str(e), unit.target_url)
            error.__cause__ = e
            return CopyResult(unit, CopyOutcome.FAILED, error)


def execute(
    copy_type: CopyType,
    sources: Sequence[str],
    target: str,
    options: Optional[CopyOptions] = None,
    client_factory: ClientFactory = client_from_url,
) -> Iterator[CopyResult]:
    """Run a classified copy and yield one result per unit as it completes.

    Closing the iterator early cancels units that have not started; running
    transfers are allowed to finish.

    Raises:
        InvalidCopyCombinationError: If copy_type is INVALID
    """
    if copy_type == CopyType.INVALID:
        raise InvalidCopyCombinationError("Invalid source and target combination.")

    options = options or CopyOptions()
    cancel = options.cancel or CancellationToken()
    options = replace(options, cancel=cancel)

    if options.create_containers:
        try:
            _ensure_container(copy_type, target, client_factory)
        except ClientError as e:
            log.error("Unable to create %s: %s", target, e)
            yield CopyResult(None, CopyOutcome.FAILED, e, source=target)
            return

    results: "queue.Queue[CopyResult]" = queue.Queue()
    workers = max(1, options.workers)
    pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="mcpy-copy")
    # only last_wins lets two units share a destination
    ordered = copy_type == CopyType.TYPE_D and options.overlap == OverlapPolicy.LAST_WINS
    inflight: Dict[str, "Future[CopyResult]"] = {}
    pending = 0

    def settled(result: CopyResult) -> CopyResult:
        if result.unit is not None:
            future = inflight.get(result.unit.target_url)
            if future is not None and future.done():
                del inflight[result.unit.target_url]
        return result

    def collect(unit: CopyUnit, future: "Future[CopyResult]") -> None:
        if future.cancelled():
            results.put(CopyResult(unit, CopyOutcome.SKIPPED))
            return
        exc = future.exception()
        if exc is not None:
            log.error("Unable to copy %s: %s", unit.source_url, exc)
            results.put(
                CopyResult(unit, CopyOutcome.FAILED, TransferFailedError(str(exc), unit.target_url))
            )
            return
        results.put(future.result())

    try:
        for produced in prepare_units(
            copy_type, sources, target, options.overlap, client_factory
        ):
            if cancel.is_cancelled:
                break
            if isinstance(produced, CopyResult):
                yield produced
                continue

            unit = produced
            if ordered:
                earlier = inflight.get(unit.target_url)
                if earlier is not None:
                    # keep writes to one destination in source order
                    earlier.exception()
            future = pool.submit(transfer, unit, options, client_factory)
            if ordered:
                inflight[unit.target_url] = future
            future.add_done_callback(lambda f, u=unit: collect(u, f))
            pending += 1

            while pending >= workers * 2:
                yield settled(results.get())
                pending -= 1
            while True:
                try:
                    result = results.get_nowait()
                except queue.Empty:
                    break
                pending -= 1
                yield settled(result)

        while pending:
            yield settled(results.get())
            pending -= 1
    except GeneratorExit:
        cancel.cancel()
        raise
    finally:
        pool.shutdown(wait=True, cancel_futures=True)


def copy(
    sources: Sequence[str],
    target: str,
    options: Optional[CopyOptions] = None,
    client_factory: ClientFactory = client_from_url,
    on_result: Optional[Callable[[CopyResult], None]] = None,
) -> CopyReport:
    """Classify and run a copy, collecting every result.

    Raises:
        InvalidCopyCombinationError: Before any I/O, if the URLs cannot form a copy
    """
    copy_type = check_copy_syntax(sources, target)
    report = CopyReport()
    for result in execute(copy_type, sources, target, options, client_factory):
        report.add(result)
        if on_result is not None:
            on_result(result)
    return report


def mirror(
    source: str,
    target: str,
    options: Optional[CopyOptions] = None,
    client_factory: ClientFactory = client_from_url,
    on_result: Optional[Callable[[CopyResult], None]] = None,
) -> CopyReport:
    """Copy only what the target does not already hold.

    Raises:
        InvalidCopyCombinationError: Before any I/O, if the URLs cannot form a copy
    """
    options = replace(options or CopyOptions(), mirror=True)
    return copy([source], target, options, client_factory, on_result)
