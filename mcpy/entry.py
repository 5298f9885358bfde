import os
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum, auto
from typing import Optional

from mcpy.exceptions import ClientError


class EntryType(Enum):
    FILE = auto()
    DIRECTORY = auto()
    BROKEN_SYMLINK = auto()
    SYMLINK_CYCLE = auto()


def canonical_name(name: str, entry_type: EntryType) -> str:
    """Forward-slash name, with a trailing separator for directories only."""
    name = name.replace("\\", "/")
    stripped = name.rstrip("/")
    if entry_type == EntryType.DIRECTORY:
        return stripped + "/"
    return stripped


@dataclass(frozen=True)
class Entry:
    name: str
    entry_type: EntryType
    size: int = 0
    modified_time: Optional[datetime] = None
    checksum: Optional[str] = None
    symlink: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", canonical_name(self.name, self.entry_type))

    @classmethod
    def file(cls, name: str, size: int = 0, modified_time: Optional[datetime] = None,
             checksum: Optional[str] = None) -> "Entry":
        return cls(name, EntryType.FILE, size, modified_time, checksum)

    @classmethod
    def directory(cls, name: str, modified_time: Optional[datetime] = None) -> "Entry":
        return cls(name, EntryType.DIRECTORY, 0, modified_time)

    @property
    def key(self) -> str:
        """Name without the directory marker, used for ordering and joins."""
        return self.name.rstrip("/")

    @property
    def base_name(self) -> str:
        return self.key.rsplit("/", 1)[-1]

    @property
    def is_directory(self) -> bool:
        return self.entry_type == EntryType.DIRECTORY

    @property
    def is_file(self) -> bool:
        return self.entry_type == EntryType.FILE

    def with_name(self, name: str) -> "Entry":
        return replace(self, name=name)

    def display_name(self) -> str:
        """Name with host separators, for presentation only."""
        if os.sep == "/":
            return self.name
        return self.name.replace("/", os.sep)

    def __str__(self) -> str:
        return f"{self.entry_type.name.lower()} {self.name}"


@dataclass
class ListItem:
    """One element of an enumeration stream.

    An error item may still carry the entry it concerns, so consumers can tell
    a broken directory link from an unreadable file.
    """

    entry: Optional[Entry] = None
    error: Optional[ClientError] = None

    @property
    def ok(self) -> bool:
        return self.error is None
