"""mcpy - copy, mirror and compare local folders and S3-compatible object storage.

Quick Start:
    from mcpy import copy, do_diff, CopyOptions

    # Copy a folder tree into a bucket, four transfers at a time
    report = copy(["/data/photos/..."], "s3://backup/photos/", CopyOptions(workers=4))
    if not report.ok:
        for result in report.failed:
            print(result.unit.target_url, result.error)

    # Compare two trees without loading either into memory
    for event in do_diff("/data/photos/...", "s3://backup/photos/..."):
        print(event)
"""

from mcpy.classify import CopyType, check_copy_syntax, classify
from mcpy.compare import ComparePolicy
from mcpy.copy import (
    CopyOptions,
    CopyOutcome,
    CopyReport,
    CopyResult,
    CopyUnit,
    OverlapPolicy,
    copy,
    execute,
    mirror,
)
from mcpy.diff import DiffEvent, DiffKind, do_diff
from mcpy.entry import Entry, EntryType, ListItem
from mcpy.listing import do_list
from mcpy.storage import client_from_url, parse_url

__version__ = "0.1.0"

__all__ = [
    "CopyType",
    "check_copy_syntax",
    "classify",
    "ComparePolicy",
    "CopyOptions",
    "CopyOutcome",
    "CopyReport",
    "CopyResult",
    "CopyUnit",
    "OverlapPolicy",
    "copy",
    "execute",
    "mirror",
    "DiffEvent",
    "DiffKind",
    "do_diff",
    "Entry",
    "EntryType",
    "ListItem",
    "do_list",
    "client_from_url",
    "parse_url",
]
