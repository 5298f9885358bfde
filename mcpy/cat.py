from typing import BinaryIO, Callable

from mcpy.clients.client import Client
from mcpy.storage import client_from_url

_CHUNK = 1024 * 1024


def cat_url(
    url: str,
    out: BinaryIO,
    client_factory: Callable[[str], Client] = client_from_url,
) -> int:
    """Stream an object to ``out`` and return the number of bytes written.

    Raises:
        NotFoundError: If the object does not exist
        IsDirectoryError: If the URL names a directory, bucket or prefix
    """
    written = 0
    with client_factory(url) as client:
        stream, _, _ = client.get()
        try:
            while True:
                chunk = stream.read(_CHUNK)
                if not chunk:
                    break
                out.write(chunk)
                written += len(chunk)
        finally:
            stream.close()
    return written
