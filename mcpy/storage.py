"""URL model and client factory.

Every command addresses storage through one URL syntax:

    /abs/path, rel/path, file:///abs/path    local filesystem
    s3://bucket/key                           S3, default AWS endpoint
    https://host[:port]/bucket/key            S3-compatible server, path style
    alias/bucket/key                          resolved through the config file

A trailing ``...`` asks for the path and everything beneath it:

    s3://bucket/photos/...
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, TYPE_CHECKING
from urllib.parse import urlsplit

from mcpy.clients.client import Client
from mcpy.clients.localclient import LocalClient
from mcpy.clients.s3client import S3Client
from mcpy.exceptions import UnsupportedProtocolError

if TYPE_CHECKING:
    from mcpy.config import Config

RECURSIVE_MARKER = "..."

_SEPARATORS = ("/", os.sep)


class BackendKind(Enum):
    FILESYSTEM = auto()
    OBJECT_STORE = auto()


@dataclass(frozen=True)
class ParsedURL:
    """Parsed components of a storage URL."""

    raw: str
    kind: BackendKind
    scheme: str
    endpoint: Optional[str]
    container: str
    key: str
    recursive: bool

    @property
    def is_filesystem(self) -> bool:
        return self.kind == BackendKind.FILESYSTEM


def is_recursive(url: str) -> bool:
    """Whether the URL carries the recursive marker.

    Only the literal suffix matters, never the state of the backend.
    """
    return url.strip().endswith(RECURSIVE_MARKER)


def strip_recursive(url: str) -> str:
    url = url.strip()
    if url.endswith(RECURSIVE_MARKER):
        return url[: -len(RECURSIVE_MARKER)]
    return url


def _is_local(url: str) -> bool:
    if url.startswith("/") or "://" not in url:
        return True
    return url.lower().startswith("file://")


def parse_url(url: str) -> ParsedURL:
    """Parse a storage URL into its components.

    Raises:
        UnsupportedProtocolError: If the scheme is not file, s3, http or https
    """
    raw = url
    recursive = is_recursive(url)
    body = strip_recursive(url)

    if _is_local(body):
        path = body[len("file://"):] if body.lower().startswith("file://") else body
        return ParsedURL(
            raw=raw,
            kind=BackendKind.FILESYSTEM,
            scheme="file",
            endpoint=None,
            container=os.path.dirname(path.rstrip("/" + os.sep)),
            key=path,
            recursive=recursive,
        )

    parsed = urlsplit(body)
    scheme = parsed.scheme.lower()

    if scheme == "s3":
        return ParsedURL(
            raw=raw,
            kind=BackendKind.OBJECT_STORE,
            scheme=scheme,
            endpoint=None,
            container=parsed.netloc,
            key=parsed.path.lstrip("/"),
            recursive=recursive,
        )

    if scheme in ("http", "https"):
        bucket, _, key = parsed.path.lstrip("/").partition("/")
        return ParsedURL(
            raw=raw,
            kind=BackendKind.OBJECT_STORE,
            scheme=scheme,
            endpoint=f"{scheme}://{parsed.netloc}",
            container=bucket,
            key=key,
            recursive=recursive,
        )

    raise UnsupportedProtocolError(
        f"Unsupported protocol: {scheme}. Supported protocols: file, s3, http, https"
    )


def denotes_container(url: str) -> bool:
    """Whether the URL names a bucket, prefix or directory rather than an object.

    Pure string test: object-store URLs without a key (or with a key ending in
    ``/``) and filesystem paths ending in a separator are containers.
    """
    parsed = parse_url(strip_recursive(url))
    if parsed.is_filesystem:
        return parsed.key.endswith(_SEPARATORS)
    return parsed.key == "" or parsed.key.endswith("/")


def is_object_key_present(url: str) -> bool:
    parsed = parse_url(strip_recursive(url))
    if parsed.is_filesystem:
        return bool(parsed.key)
    return bool(parsed.container) and bool(parsed.key)


def join_url(base: str, relative: str) -> str:
    """Append a forward-slash relative path to a URL."""
    base = strip_recursive(base)
    relative = relative.lstrip("/")
    if not relative:
        return base
    if base.endswith(_SEPARATORS):
        return base + relative
    return f"{base}/{relative}"


def base_name(url: str) -> str:
    """Last path component of a URL, ignoring trailing separators."""
    body = strip_recursive(url).rstrip("/" + os.sep)
    for sep in _SEPARATORS:
        body = body.rsplit(sep, 1)[-1]
    return body


def client_from_url(url: str, config: Optional["Config"] = None) -> Client:
    """Create a client bound to ``url``.

    When a configuration is given, aliases are expanded and the remote's
    credentials, region and proxy are passed to the client.
    """
    remote = None
    if config is not None:
        url, remote = config.resolve(url)

    parsed = parse_url(url)

    if parsed.is_filesystem:
        return LocalClient(parsed.key)

    kwargs = {}
    if remote is not None and remote.type == "s3":
        kwargs = dict(
            aws_access_key_id=remote.aws_access_key_id,
            aws_secret_access_key=remote.aws_secret_access_key,
            region_name=remote.region_name,
            proxy_config=remote.proxy,
            name=remote.name,
        )

    return S3Client(
        parsed.container,
        parsed.key,
        endpoint_url=parsed.endpoint,
        url=strip_recursive(url),
        **kwargs,
    )


def container_url(url: str) -> Optional[str]:
    """URL of the bucket holding an object-store URL, None for filesystem URLs."""
    parsed = parse_url(url)
    if parsed.is_filesystem or not parsed.container:
        return None
    if parsed.endpoint:
        return f"{parsed.endpoint}/{parsed.container}"
    return f"{parsed.scheme}://{parsed.container}"
