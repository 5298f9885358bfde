"""Equality policies for mirror skips and diff suppression."""

from enum import Enum
from typing import Optional

from mcpy.entry import Entry


class ComparePolicy(Enum):
    NAME_ONLY = "name"
    SIZE = "size"
    SIZE_AND_MTIME = "size_and_mtime"
    CHECKSUM = "checksum"

    @classmethod
    def parse(cls, value: str) -> "ComparePolicy":
        try:
            return cls(value.lower())
        except ValueError:
            choices = ", ".join(p.value for p in cls)
            raise ValueError(f"unknown compare policy '{value}', expected one of {choices}")


def same_content(source: Entry, target: Optional[Entry], policy: ComparePolicy) -> bool:
    """Whether ``target`` already holds what ``source`` would write.

    SIZE_AND_MTIME treats a target at least as new as the source as current.
    CHECKSUM falls back to SIZE when either side has no checksum, which is
    the case for every filesystem entry.
    """
    if target is None or target.entry_type != source.entry_type:
        return False
    if policy == ComparePolicy.NAME_ONLY:
        return True
    if policy == ComparePolicy.CHECKSUM and source.checksum and target.checksum:
        return source.checksum == target.checksum
    if source.size != target.size:
        return False
    if policy == ComparePolicy.SIZE_AND_MTIME:
        if source.modified_time is None or target.modified_time is None:
            return False
        return target.modified_time >= source.modified_time
    return True
