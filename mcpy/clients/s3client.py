import io
import logging
import mimetypes
from datetime import timedelta
from typing import Any, BinaryIO, Dict, Iterator, List, Optional, Tuple, TYPE_CHECKING
from typing_extensions import Self

import boto3
from botocore import UNSIGNED
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError as BotoClientError

from mcpy.clients.client import Client
from mcpy.entry import Entry, ListItem
from mcpy.exceptions import (
    ClientError,
    ContainerCreateFailedError,
    InvalidRangeError,
    IsDirectoryError,
    NotFoundError,
    PermissionDeniedError,
    ShareError,
)
from mcpy.streams import LimitedReader

if TYPE_CHECKING:
    from mcpy.config import ProxyConfig

log = logging.getLogger(__name__)

_NOT_FOUND = {"NoSuchKey", "NoSuchBucket", "NotFound", "404"}
_DENIED = {"AccessDenied", "Forbidden", "403", "AllAccessDisabled"}
_ALREADY_EXISTS = {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}


def translate_boto_error(e: Exception, url: str) -> ClientError:
    """Map a botocore error onto the client error taxonomy."""
    if isinstance(e, BotoClientError):
        error = e.response.get("Error", {})
        code = str(error.get("Code", ""))
        message = f"{error.get('Message') or code} '{url}'"
        if code in _NOT_FOUND:
            return NotFoundError(message, url)
        if code in _DENIED:
            return PermissionDeniedError(message, url)
        if code == "InvalidRange":
            return InvalidRangeError(-1, -1, url)
        return ClientError(message, url)
    return ClientError(f"{e} '{url}'", url)


def _etag(value: Optional[str]) -> Optional[str]:
    return value.strip('"') if value else None


class S3Client(Client):
    def __init__(
        self,
        bucket_name: str,
        key: str = "",
        *,
        endpoint_url: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        region_name: Optional[str] = None,
        name: Optional[str] = None,
        proxy_config: Optional["ProxyConfig"] = None,
        url: Optional[str] = None,
    ) -> None:
        """
        Initialize the S3-compatible storage client.

        Args:
            bucket_name: Name of the bucket, empty to address the whole service
            key: Object key or prefix inside the bucket
            endpoint_url: URL to the S3-compatible service endpoint
            aws_access_key_id: Optional access key ID for authentication
            aws_secret_access_key: Optional secret access key for authentication
            region_name: Optional AWS region name
            name: Optional human-readable name for this client
            proxy_config: Optional SOCKS5 proxy configuration
            url: URL the client was created from, used in messages
        """
        self.bucket_name = bucket_name
        self.key = key
        self.endpoint_url = endpoint_url
        self.aws_access_key_id = aws_access_key_id
        self.aws_secret_access_key = aws_secret_access_key
        self.region_name = region_name
        self._name = name if name else f"S3:{bucket_name}"
        self.proxy_config = proxy_config
        self._url = url or f"s3://{bucket_name}/{key}"

        # created on first use
        self.s3_client: Any = None  # boto3 client doesn't have good type stubs

    def __enter__(self) -> Self:
        self._connect()
        return self

    def _connect(self) -> Any:
        if self.s3_client is not None:
            return self.s3_client

        session = boto3.session.Session(
            aws_access_key_id=self.aws_access_key_id,
            aws_secret_access_key=self.aws_secret_access_key,
            region_name=self.region_name,
        )

        config_kwargs: Dict[str, Any] = {}

        if self.proxy_config:
            proxy_url = self._build_proxy_url()
            config_kwargs["proxies"] = {"http": proxy_url, "https": proxy_url}

        # If no credentials are provided, use unsigned requests (anonymous access)
        if not self.aws_access_key_id and not self.aws_secret_access_key:
            config_kwargs["signature_version"] = UNSIGNED

        # S3-compatible servers are addressed as endpoint/bucket/key
        if self.endpoint_url:
            config_kwargs["s3"] = {"addressing_style": "path"}

        config = Config(**config_kwargs) if config_kwargs else None

        self.s3_client = session.client("s3", endpoint_url=self.endpoint_url, config=config)
        return self.s3_client

    def _build_proxy_url(self) -> str:
        """Build SOCKS5 proxy URL for boto3."""
        assert self.proxy_config is not None, "Proxy config not set"
        if self.proxy_config.username and self.proxy_config.password:
            return (
                f"socks5://{self.proxy_config.username}:{self.proxy_config.password}"
                f"@{self.proxy_config.host}:{self.proxy_config.port}"
            )
        return f"socks5://{self.proxy_config.host}:{self.proxy_config.port}"

    def close(self) -> None:
        self.s3_client = None

    @property
    def url(self) -> str:
        return self._url

    def name(self) -> str:
        return self._name

    def _call(self, method: str, **kwargs: Any) -> Any:
        log.debug("s3 %s %s", method, kwargs)
        try:
            return getattr(self._connect(), method)(**kwargs)
        except (BotoClientError, BotoCoreError) as e:
            raise translate_boto_error(e, self.url)

    def _prefix_exists(self, prefix: str) -> bool:
        response = self._call(
            "list_objects_v2", Bucket=self.bucket_name, Prefix=prefix, MaxKeys=1
        )
        return response.get("KeyCount", len(response.get("Contents", []))) > 0

    def _head_object(self) -> Optional[Entry]:
        try:
            head = self._call("head_object", Bucket=self.bucket_name, Key=self.key)
        except NotFoundError:
            return None
        return Entry.file(
            self.key,
            size=head["ContentLength"],
            modified_time=head.get("LastModified"),
            checksum=_etag(head.get("ETag")),
        )

    def stat(self) -> Entry:
        if not self.bucket_name:
            return Entry.directory("/")

        if not self.key:
            self._call("head_bucket", Bucket=self.bucket_name)
            return Entry.directory(self.bucket_name)

        if not self.key.endswith("/"):
            entry = self._head_object()
            if entry is not None:
                return entry

        prefix = self.key if self.key.endswith("/") else self.key + "/"
        if self._prefix_exists(prefix):
            return Entry.directory(self.key)
        raise NotFoundError(f"object does not exist '{self.url}'", self.url)

    def _list_buckets(self) -> Iterator[ListItem]:
        try:
            response = self._call("list_buckets")
        except ClientError as e:
            yield ListItem(error=e)
            return
        buckets = sorted(response.get("Buckets", []), key=lambda b: b["Name"])
        for bucket in buckets:
            yield ListItem(entry=Entry.directory(bucket["Name"], bucket.get("CreationDate")))

    def list(self, recursive: bool) -> Iterator[ListItem]:
        if not self.bucket_name:
            yield from self._list_buckets()
            return

        if self.key and not self.key.endswith("/"):
            try:
                entry = self._head_object()
            except ClientError as e:
                yield ListItem(error=e)
                return
            if entry is not None:
                yield ListItem(entry=entry.with_name(entry.base_name))
                return

        prefix = self.key if not self.key or self.key.endswith("/") else self.key + "/"
        kwargs: Dict[str, Any] = {"Bucket": self.bucket_name, "Prefix": prefix}
        if not recursive:
            kwargs["Delimiter"] = "/"

        shallow: List[Entry] = []
        try:
            paginator = self._connect().get_paginator("list_objects_v2")
            for page in paginator.paginate(**kwargs):
                for common_prefix in page.get("CommonPrefixes", []):
                    name = common_prefix["Prefix"][len(prefix):]
                    shallow.append(Entry.directory(name))

                for content in page.get("Contents", []):
                    name = content["Key"][len(prefix):]
                    # folder placeholder objects
                    if not name or name.endswith("/"):
                        continue
                    entry = Entry.file(
                        name,
                        size=content["Size"],
                        modified_time=content.get("LastModified"),
                        checksum=_etag(content.get("ETag")),
                    )
                    if recursive:
                        yield ListItem(entry=entry)
                    else:
                        shallow.append(entry)
        except (BotoClientError, BotoCoreError) as e:
            yield ListItem(error=translate_boto_error(e, self.url))
            return

        # one level only; S3 orders "a/" after "a-b", entries are keyed without the slash
        shallow.sort(key=lambda e: e.key)
        for entry in shallow:
            yield ListItem(entry=entry)

    def _body(self, response: Dict[str, Any], length: int) -> BinaryIO:
        # mid-stream read failures surface as client errors
        return LimitedReader(
            response["Body"],
            length,
            errors=(BotoClientError, BotoCoreError),
            translate=lambda e: translate_boto_error(e, self.url),
        )

    def _object_entry(self) -> Entry:
        if not self.key or self.key.endswith("/"):
            raise IsDirectoryError(f"'{self.url}' is a bucket or prefix", self.url)
        entry = self._head_object()
        if entry is None:
            raise NotFoundError(f"object does not exist '{self.url}'", self.url)
        return entry

    def get(self) -> Tuple[BinaryIO, int, Optional[str]]:
        if not self.key or self.key.endswith("/"):
            raise IsDirectoryError(f"'{self.url}' is a bucket or prefix", self.url)
        response = self._call("get_object", Bucket=self.bucket_name, Key=self.key)
        size = response["ContentLength"]
        return self._body(response, size), size, _etag(response.get("ETag"))

    def get_partial(self, offset: int, length: int) -> BinaryIO:
        if offset < 0 or length < 0:
            raise InvalidRangeError(offset, length, self.url)
        entry = self._object_entry()
        if offset + length - 1 > entry.size - 1:
            raise InvalidRangeError(offset, length, self.url)
        if length == 0:
            return io.BytesIO(b"")
        response = self._call(
            "get_object",
            Bucket=self.bucket_name,
            Key=self.key,
            Range=f"bytes={offset}-{offset + length - 1}",
        )
        return self._body(response, length)

    def put(self, stream: BinaryIO, size: int) -> None:
        if not self.key or self.key.endswith("/"):
            raise IsDirectoryError(f"'{self.url}' is a bucket or prefix", self.url)

        extra_args = {}
        content_type, _ = mimetypes.guess_type(self.key)
        if content_type:
            extra_args["ContentType"] = content_type

        log.debug("s3 upload_fileobj %s/%s (%d bytes)", self.bucket_name, self.key, size)
        try:
            self._connect().upload_fileobj(
                LimitedReader(stream, size),
                self.bucket_name,
                self.key,
                ExtraArgs=extra_args or None,
            )
        except (BotoClientError, BotoCoreError) as e:
            raise translate_boto_error(e, self.url)

    def put_container(self, name: Optional[str] = None) -> None:
        bucket = name if name is not None else self.bucket_name
        try:
            self._call("head_bucket", Bucket=bucket)
            return
        except NotFoundError:
            pass
        except ClientError as e:
            log.debug("head_bucket %s failed: %s", bucket, e)

        kwargs: Dict[str, Any] = {"Bucket": bucket}
        if self.region_name and self.region_name != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region_name}
        try:
            self._connect().create_bucket(**kwargs)
        except BotoClientError as e:
            if e.response.get("Error", {}).get("Code") in _ALREADY_EXISTS:
                return
            raise ContainerCreateFailedError(str(translate_boto_error(e, self.url)), self.url)
        except BotoCoreError as e:
            raise ContainerCreateFailedError(str(e), self.url)

    def share_download(self, expiry: timedelta) -> str:
        self._object_entry()
        try:
            return self._connect().generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": self.key},
                ExpiresIn=int(expiry.total_seconds()),
            )
        except (BotoClientError, BotoCoreError) as e:
            raise ShareError(str(e), self.url)

    def share_upload(
        self, recursive: bool, expiry: timedelta, content_type: Optional[str] = None
    ) -> Dict[str, str]:
        if not self.bucket_name or not self.key:
            raise ShareError(f"upload location needs an object key '{self.url}'", self.url)

        fields: Dict[str, str] = {}
        conditions: List[Any] = []
        if recursive:
            conditions.append(["starts-with", "$key", self.key])
        if content_type:
            fields["Content-Type"] = content_type
            conditions.append({"Content-Type": content_type})

        try:
            post = self._connect().generate_presigned_post(
                Bucket=self.bucket_name,
                Key=self.key,
                Fields=fields or None,
                Conditions=conditions or None,
                ExpiresIn=int(expiry.total_seconds()),
            )
        except (BotoClientError, BotoCoreError) as e:
            raise ShareError(str(e), self.url)

        result = dict(post["fields"])
        result["url"] = post["url"]
        return result
