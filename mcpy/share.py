"""Pre-signed download links and upload forms, with a local history file."""

import json
import logging
import os
import re
import shlex
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from mcpy.clients.client import Client
from mcpy.exceptions import ShareError
from mcpy.storage import client_from_url, is_object_key_present, is_recursive, strip_recursive

log = logging.getLogger(__name__)

DEFAULT_EXPIRY = timedelta(days=7)
MAX_EXPIRY = timedelta(days=7)
FILE_PLACEHOLDER = "<FILE>"

_DURATION = re.compile(r"^(?:(\d+)h)?(?:(\d+)m)?(?:(\d+)s)?$")


def parse_expiry(value: Optional[str]) -> timedelta:
    """Parse ``NN[h|m|s]`` durations such as ``168h`` or ``1h30m``.

    An empty value means the default of 7 days.

    Raises:
        ValueError: If the value is malformed, zero or longer than 7 days
    """
    if value is None or not value.strip():
        return DEFAULT_EXPIRY
    match = _DURATION.match(value.strip())
    if match is None or not any(match.groups()):
        raise ValueError(f"invalid duration '{value}', expected NN[h|m|s]")
    hours, minutes, seconds = (int(g) if g else 0 for g in match.groups())
    expiry = timedelta(hours=hours, minutes=minutes, seconds=seconds)
    if expiry <= timedelta(0):
        raise ValueError("expiry must be positive")
    if expiry > MAX_EXPIRY:
        raise ValueError(f"expiry cannot be longer than {MAX_EXPIRY.days} days")
    return expiry


@dataclass
class ShareRecord:
    date: datetime
    expiry: timedelta
    key: str
    share_url: str
    upload_info: Dict[str, str] = field(default_factory=dict)

    @property
    def is_upload(self) -> bool:
        return bool(self.upload_info)

    def expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.date + self.expiry < now

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "expiry": int(self.expiry.total_seconds()),
            "key": self.key,
            "url": self.share_url,
            "uploadInfo": self.upload_info,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShareRecord":
        return cls(
            date=datetime.fromisoformat(data["date"]),
            expiry=timedelta(seconds=data["expiry"]),
            key=data["key"],
            share_url=data.get("url", ""),
            upload_info=dict(data.get("uploadInfo") or {}),
        )


class ShareHistory:
    """JSON file of issued share links, newest last."""

    def __init__(self, path: str) -> None:
        self.path = os.path.expanduser(path)

    def load(self) -> List[ShareRecord]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            raise ShareError(f"Unable to read share history '{self.path}': {e}", self.path)
        return [ShareRecord.from_dict(item) for item in data.get("shares", [])]

    def append(self, record: ShareRecord) -> None:
        records = self.load()
        records.append(record)
        self._save(records)

    def prune(self, now: Optional[datetime] = None) -> int:
        """Drop expired records and return how many were removed."""
        records = self.load()
        alive = [r for r in records if not r.expired(now)]
        if len(alive) != len(records):
            self._save(alive)
        return len(records) - len(alive)

    def _save(self, records: List[ShareRecord]) -> None:
        directory = os.path.dirname(self.path) or "."
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=".share-", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({"version": "1", "shares": [r.to_dict() for r in records]}, f, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            raise ShareError(f"Unable to save share history '{self.path}': {e}", self.path)


def check_share_upload_url(url: str) -> None:
    """
    Raises:
        ShareError: If the URL has no object key or ends with a separator
    """
    url = url.strip()
    target = strip_recursive(url)
    if not is_object_key_present(target):
        raise ShareError(f"Upload location needs object key '{url}'.", url)
    if url.endswith("/"):
        raise ShareError(
            f"Upload location cannot end with '/'. Did you mean '{target}...'.", url
        )


def share_upload(
    url: str,
    expiry: timedelta = DEFAULT_EXPIRY,
    content_type: Optional[str] = None,
    history: Optional[ShareHistory] = None,
    client_factory: Callable[[str], Client] = client_from_url,
) -> ShareRecord:
    """Issue an upload form for ``url``.

    A recursive URL allows uploads of any object under the prefix; the key
    field then ends with a ``<FILE>`` placeholder for the caller to fill in.
    """
    check_share_upload_url(url)
    recursive = is_recursive(url)
    target = strip_recursive(url)

    with client_factory(target) as client:
        fields = client.share_upload(recursive, expiry, content_type)

    form_url = fields.pop("url", "")
    key = target
    if recursive:
        key = key + "..."
        fields["key"] = fields.get("key", "") + FILE_PLACEHOLDER

    record = ShareRecord(
        date=datetime.now(timezone.utc),
        expiry=expiry,
        key=key,
        share_url=form_url,
        upload_info=fields,
    )
    if history is not None:
        history.append(record)
    log.debug("issued upload form for %s", key)
    return record


def share_download(
    url: str,
    expiry: timedelta = DEFAULT_EXPIRY,
    history: Optional[ShareHistory] = None,
    client_factory: Callable[[str], Client] = client_from_url,
) -> ShareRecord:
    """Issue a pre-signed download link for the object at ``url``."""
    if is_recursive(url):
        raise ShareError("Download links are issued for single objects only.", url)
    with client_factory(url) as client:
        signed = client.share_download(expiry)
    record = ShareRecord(
        date=datetime.now(timezone.utc), expiry=expiry, key=url.strip(), share_url=signed
    )
    if history is not None:
        history.append(record)
    return record


def upload_command(record: ShareRecord) -> str:
    """Ready-to-run curl command for an upload record."""
    parts = ["curl", shlex.quote(record.share_url)]
    for name, value in record.upload_info.items():
        parts.extend(["-F", shlex.quote(f"{name}={value}")])
    parts.extend(["-F", shlex.quote(f"file=@{FILE_PLACEHOLDER}")])
    return " ".join(parts)
