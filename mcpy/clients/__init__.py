"""Storage backends for mcpy."""

from mcpy.clients.client import Client
from mcpy.clients.localclient import LocalClient
from mcpy.clients.s3client import S3Client

__all__ = ["Client", "LocalClient", "S3Client"]
