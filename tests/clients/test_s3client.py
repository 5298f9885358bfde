"""Tests for S3Client class."""

import io
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from botocore import UNSIGNED
from botocore.exceptions import ClientError as BotoClientError, IncompleteReadError

from mcpy.clients.s3client import S3Client, translate_boto_error
from mcpy.config import ProxyConfig
from mcpy.exceptions import (
    ClientError,
    ContainerCreateFailedError,
    InvalidRangeError,
    IsDirectoryError,
    NotFoundError,
    PermissionDeniedError,
)
from tests.fixtures.test_data import BrokenBody

MODIFIED = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def boto_error(code, operation="HeadObject"):
    return BotoClientError({"Error": {"Code": code, "Message": code}}, operation)


class TestS3Client(unittest.TestCase):
    """Test cases for S3Client with boto3 mocked out."""

    def setUp(self):
        patcher = patch("mcpy.clients.s3client.boto3")
        self.mock_boto3 = patcher.start()
        self.addCleanup(patcher.stop)
        self.session = self.mock_boto3.session.Session.return_value
        self.s3 = self.session.client.return_value

    def test_anonymous_client_is_unsigned(self):
        with S3Client("bucket", "key"):
            pass
        _, kwargs = self.session.client.call_args
        self.assertEqual(kwargs["config"].signature_version, UNSIGNED)
        self.assertIsNone(kwargs["endpoint_url"])

    def test_endpoint_uses_path_style(self):
        client = S3Client(
            "bucket",
            "key",
            endpoint_url="http://localhost:9000",
            aws_access_key_id="id",
            aws_secret_access_key="secret",
        )
        with client:
            pass
        self.mock_boto3.session.Session.assert_called_once_with(
            aws_access_key_id="id", aws_secret_access_key="secret", region_name=None
        )
        _, kwargs = self.session.client.call_args
        self.assertEqual(kwargs["endpoint_url"], "http://localhost:9000")
        self.assertEqual(kwargs["config"].s3, {"addressing_style": "path"})

    def test_proxy_url(self):
        client = S3Client(
            "bucket",
            proxy_config=ProxyConfig(host="proxy", port=1081, username="u", password="p"),
        )
        self.assertEqual(client._build_proxy_url(), "socks5://u:p@proxy:1081")

    def test_client_name(self):
        self.assertEqual(S3Client("bucket").name(), "S3:bucket")
        self.assertEqual(S3Client("bucket", name="play").name(), "play")

    def test_put_then_get_round_trip(self):
        uploaded = {}

        def upload_fileobj(stream, bucket, key, ExtraArgs=None):
            uploaded[(bucket, key)] = stream.read()

        self.s3.upload_fileobj.side_effect = upload_fileobj
        with S3Client("bucket", "hello.txt") as client:
            client.put(io.BytesIO(b"hello and more"), 5)
            self.s3.get_object.return_value = {
                "Body": io.BytesIO(uploaded[("bucket", "hello.txt")]),
                "ContentLength": 5,
                "ETag": '"5d41402abc4b2a76b9719d911017c592"',
            }
            stream, size, checksum = client.get()

        self.assertEqual(stream.read(), b"hello")
        self.assertEqual(size, 5)
        self.assertEqual(checksum, "5d41402abc4b2a76b9719d911017c592")
        _, kwargs = self.s3.upload_fileobj.call_args
        self.assertEqual(kwargs["ExtraArgs"], {"ContentType": "text/plain"})

    def test_put_to_prefix(self):
        with self.assertRaises(IsDirectoryError):
            S3Client("bucket", "dir/").put(io.BytesIO(b"x"), 1)

    def test_get_partial_sends_range(self):
        self.s3.head_object.return_value = {"ContentLength": 10, "LastModified": MODIFIED}
        self.s3.get_object.return_value = {"Body": io.BytesIO(b"234")}
        with S3Client("bucket", "obj") as client:
            self.assertEqual(client.get_partial(2, 3).read(), b"234")
        self.s3.get_object.assert_called_once_with(Bucket="bucket", Key="obj", Range="bytes=2-4")

    def test_body_read_error_is_client_error(self):
        self.s3.get_object.return_value = {"Body": BrokenBody(), "ContentLength": 3}
        with S3Client("bucket", "obj") as client:
            stream, size, _ = client.get()
            with self.assertRaises(ClientError) as ctx:
                stream.read()
        self.assertIsInstance(ctx.exception.__cause__, IncompleteReadError)
        self.assertEqual(ctx.exception.url, "s3://bucket/obj")

    def test_get_partial_bounds(self):
        self.s3.head_object.return_value = {"ContentLength": 5}
        client = S3Client("bucket", "obj")
        with self.assertRaises(InvalidRangeError):
            client.get_partial(-1, 1)
        with self.assertRaises(InvalidRangeError):
            client.get_partial(3, 3)
        self.s3.get_object.assert_not_called()

    def test_stat_object(self):
        self.s3.head_object.return_value = {
            "ContentLength": 42,
            "LastModified": MODIFIED,
            "ETag": '"abc"',
        }
        entry = S3Client("bucket", "dir/obj").stat()
        self.assertTrue(entry.is_file)
        self.assertEqual(entry.size, 42)
        self.assertEqual(entry.checksum, "abc")
        self.assertEqual(entry.modified_time, MODIFIED)

    def test_stat_prefix(self):
        self.s3.head_object.side_effect = boto_error("404")
        self.s3.list_objects_v2.return_value = {"KeyCount": 1}
        entry = S3Client("bucket", "dir").stat()
        self.assertTrue(entry.is_directory)
        self.s3.list_objects_v2.assert_called_once_with(Bucket="bucket", Prefix="dir/", MaxKeys=1)

    def test_stat_missing(self):
        self.s3.head_object.side_effect = boto_error("404")
        self.s3.list_objects_v2.return_value = {"KeyCount": 0}
        with self.assertRaises(NotFoundError):
            S3Client("bucket", "missing").stat()

    def test_stat_bucket_denied(self):
        self.s3.head_bucket.side_effect = boto_error("403", "HeadBucket")
        with self.assertRaises(PermissionDeniedError):
            S3Client("bucket").stat()

    def test_list_recursive_skips_folder_markers(self):
        paginator = self.s3.get_paginator.return_value
        paginator.paginate.return_value = [
            {"Contents": [
                {"Key": "dir/", "Size": 0},
                {"Key": "dir/a.txt", "Size": 1, "LastModified": MODIFIED, "ETag": '"1"'},
            ]},
            {"Contents": [{"Key": "dir/sub/b.txt", "Size": 2, "LastModified": MODIFIED}]},
        ]
        items = list(S3Client("bucket", "dir/").list(recursive=True))
        self.assertEqual([i.entry.name for i in items], ["a.txt", "sub/b.txt"])
        paginator.paginate.assert_called_once_with(Bucket="bucket", Prefix="dir/")

    def test_list_shallow_orders_by_key(self):
        paginator = self.s3.get_paginator.return_value
        paginator.paginate.return_value = [
            {
                "Contents": [{"Key": "a-b", "Size": 1}],
                "CommonPrefixes": [{"Prefix": "a/"}],
            }
        ]
        items = list(S3Client("bucket").list(recursive=False))
        self.assertEqual([i.entry.name for i in items], ["a/", "a-b"])
        paginator.paginate.assert_called_once_with(Bucket="bucket", Prefix="", Delimiter="/")

    def test_list_error_is_yielded(self):
        paginator = self.s3.get_paginator.return_value
        paginator.paginate.side_effect = boto_error("AccessDenied", "ListObjectsV2")
        items = list(S3Client("bucket").list(recursive=True))
        self.assertEqual(len(items), 1)
        self.assertIsInstance(items[0].error, PermissionDeniedError)

    def test_list_buckets(self):
        self.s3.list_buckets.return_value = {
            "Buckets": [{"Name": "zeta"}, {"Name": "alpha", "CreationDate": MODIFIED}]
        }
        names = [i.entry.name for i in S3Client("").list(recursive=False)]
        self.assertEqual(names, ["alpha/", "zeta/"])

    def test_put_container_creates_missing_bucket(self):
        self.s3.head_bucket.side_effect = boto_error("404", "HeadBucket")
        S3Client("bucket", region_name="eu-west-1").put_container()
        self.s3.create_bucket.assert_called_once_with(
            Bucket="bucket", CreateBucketConfiguration={"LocationConstraint": "eu-west-1"}
        )

    def test_put_container_already_owned(self):
        self.s3.head_bucket.side_effect = boto_error("404", "HeadBucket")
        self.s3.create_bucket.side_effect = boto_error("BucketAlreadyOwnedByYou", "CreateBucket")
        S3Client("bucket").put_container()

    def test_put_container_failure(self):
        self.s3.head_bucket.side_effect = boto_error("404", "HeadBucket")
        self.s3.create_bucket.side_effect = boto_error("InvalidBucketName", "CreateBucket")
        with self.assertRaises(ContainerCreateFailedError):
            S3Client("Bad_Bucket").put_container()

    def test_put_container_existing_bucket(self):
        S3Client("bucket").put_container()
        self.s3.create_bucket.assert_not_called()

    def test_share_download(self):
        self.s3.head_object.return_value = {"ContentLength": 1}
        self.s3.generate_presigned_url.return_value = "https://signed"
        url = S3Client("bucket", "obj").share_download(timedelta(hours=2))
        self.assertEqual(url, "https://signed")
        self.s3.generate_presigned_url.assert_called_once_with(
            "get_object", Params={"Bucket": "bucket", "Key": "obj"}, ExpiresIn=7200
        )

    def test_share_upload_recursive(self):
        self.s3.generate_presigned_post.return_value = {
            "url": "https://bucket.s3.amazonaws.com/",
            "fields": {"key": "uploads/", "policy": "p"},
        }
        fields = S3Client("bucket", "uploads/").share_upload(
            True, timedelta(hours=1), "image/png"
        )
        self.assertEqual(fields["url"], "https://bucket.s3.amazonaws.com/")
        self.assertEqual(fields["policy"], "p")
        _, kwargs = self.s3.generate_presigned_post.call_args
        self.assertIn(["starts-with", "$key", "uploads/"], kwargs["Conditions"])
        self.assertIn({"Content-Type": "image/png"}, kwargs["Conditions"])
        self.assertEqual(kwargs["Fields"], {"Content-Type": "image/png"})


class TestErrorTranslation(unittest.TestCase):

    def test_codes(self):
        self.assertIsInstance(translate_boto_error(boto_error("NoSuchKey"), "u"), NotFoundError)
        self.assertIsInstance(translate_boto_error(boto_error("NoSuchBucket"), "u"), NotFoundError)
        self.assertIsInstance(
            translate_boto_error(boto_error("AccessDenied"), "u"), PermissionDeniedError
        )
        self.assertIsInstance(
            translate_boto_error(boto_error("InvalidRange"), "u"), InvalidRangeError
        )

    def test_url_is_kept(self):
        error = translate_boto_error(boto_error("SlowDown"), "s3://b/k")
        self.assertEqual(error.url, "s3://b/k")
        self.assertIn("s3://b/k", str(error))


if __name__ == "__main__":
    unittest.main()
