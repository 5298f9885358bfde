from abc import abstractmethod, ABCMeta
from contextlib import AbstractContextManager
from datetime import timedelta
from types import TracebackType
from typing import BinaryIO, Dict, Iterator, Optional, Tuple
from typing_extensions import Self

from mcpy.entry import Entry, ListItem


class Client(AbstractContextManager, metaclass=ABCMeta):
    """A storage backend bound to a single URL.

    Every operation addresses the object, bucket or directory named by the
    URL the client was created for. Errors are raised from the
    ``mcpy.exceptions`` taxonomy, never as backend-native exceptions.
    """

    #: enumeration skips vanished and unreadable paths instead of failing
    filesystem = False

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.close()

    def close(self) -> None:
        """Release backend sessions held by the client."""

    @property
    @abstractmethod
    def url(self) -> str:
        """The URL this client is bound to, without the recursive marker."""

    @abstractmethod
    def name(self) -> str:
        """
        Name of the resource represented by the client.

        :return:
            A string representing a human-readable name.
        """

    @abstractmethod
    def stat(self) -> Entry:
        """
        Metadata for the exact path.

        Returns:
            An Entry named after the last path component

        Raises:
            NotFoundError: If nothing exists at the path
        """

    @abstractmethod
    def list(self, recursive: bool) -> Iterator[ListItem]:
        """
        Enumerate the path.

        Shallow listings yield direct children, files and directories alike.
        Recursive listings yield every file of the subtree. Names are relative
        to the client's path and the stream is ordered by name. Listing a file
        yields the file itself.

        The iterator is single-pass; drain it or close it to release
        directory handles and pagination state.

        Args:
            recursive: Whether to descend into sub-directories

        Returns:
            An iterator of ListItem, each holding an entry or an error
        """

    @abstractmethod
    def get(self) -> Tuple[BinaryIO, int, Optional[str]]:
        """
        Open the object for reading.

        Returns:
            A tuple of (stream, size, checksum); checksum may be None
        """

    @abstractmethod
    def get_partial(self, offset: int, length: int) -> BinaryIO:
        """
        Open ``length`` bytes of the object starting at ``offset``.

        Raises:
            InvalidRangeError: If offset is negative or the range ends past the object
        """

    @abstractmethod
    def put(self, stream: BinaryIO, size: int) -> None:
        """
        Write the object from a stream of ``size`` bytes.

        Args:
            stream: Readable binary stream
            size: Number of bytes to read from the stream
        """

    @abstractmethod
    def put_container(self, name: Optional[str] = None) -> None:
        """
        Create a bucket or directory. Existing containers are not an error.

        Args:
            name: Container to create, defaults to the client's own container

        Raises:
            ContainerCreateFailedError: If the container could not be created
        """

    @abstractmethod
    def share_download(self, expiry: timedelta) -> str:
        """
        Pre-signed URL to download the object.

        Args:
            expiry: How long the link stays valid
        """

    @abstractmethod
    def share_upload(
        self, recursive: bool, expiry: timedelta, content_type: Optional[str] = None
    ) -> Dict[str, str]:
        """
        Pre-signed upload form for the object, or for any object under the
        prefix when ``recursive`` is set.

        Returns:
            A mapping of form field name to value, including the target url
        """
