import errno
import logging
import os
import stat
import tempfile
from datetime import datetime, timedelta, timezone
from typing import BinaryIO, Dict, Iterator, List, Optional, Tuple

from mcpy.clients.client import Client
from mcpy.entry import Entry, EntryType, ListItem
from mcpy.exceptions import (
    BrokenSymlinkError,
    ClientError,
    ContainerCreateFailedError,
    InvalidRangeError,
    IsDirectoryError,
    NotDirectoryError,
    NotFoundError,
    PermissionDeniedError,
    ShareError,
    SymlinkCycleError,
    TransferFailedError,
)
from mcpy.streams import LimitedReader

log = logging.getLogger(__name__)

_COPY_BUFSIZE = 1024 * 1024


def _current_umask() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return umask


# new files get the mode open() would give them
_NEW_FILE_MODE = 0o666 & ~_current_umask()


def _file_mode(path: str) -> int:
    """Mode for a file written to ``path``: the existing file's, else the umask default."""
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        return _NEW_FILE_MODE


def translate_os_error(e: OSError, path: str) -> ClientError:
    """Map an OSError onto the client error taxonomy."""
    message = f"{e.strerror or e} '{path}'"
    if isinstance(e, FileNotFoundError):
        return NotFoundError(message, path)
    if isinstance(e, PermissionError):
        return PermissionDeniedError(message, path)
    if isinstance(e, NotADirectoryError):
        return NotDirectoryError(message, path)
    if isinstance(e, IsADirectoryError):
        return IsDirectoryError(message, path)
    if e.errno == errno.ELOOP:
        return SymlinkCycleError(message, path)
    return ClientError(message, path)


def _mtime(st: os.stat_result) -> datetime:
    return datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)


class LocalClient(Client):
    filesystem = True

    def __init__(self, path: str) -> None:
        self.path = path

    @property
    def url(self) -> str:
        return self.path

    def name(self) -> str:
        return "Local Storage"

    def _fs_path(self) -> str:
        stripped = self.path.rstrip("/" + os.sep)
        return stripped or self.path

    def _stat(self, path: str) -> os.stat_result:
        try:
            return os.stat(path)
        except FileNotFoundError as e:
            if os.path.islink(path):
                raise BrokenSymlinkError(f"broken symlink '{path}'", path)
            raise translate_os_error(e, path)
        except OSError as e:
            raise translate_os_error(e, path)

    def stat(self) -> Entry:
        path = self._fs_path()
        st = self._stat(path)
        entry_type = EntryType.DIRECTORY if os.path.isdir(path) else EntryType.FILE
        return Entry(
            path,
            entry_type,
            size=st.st_size if entry_type == EntryType.FILE else 0,
            modified_time=_mtime(st),
            symlink=os.path.islink(path),
        )

    def _child(self, full: str, rel: str) -> ListItem:
        """Build the list item for one directory member."""
        is_link = os.path.islink(full)
        try:
            st = os.stat(full)
        except FileNotFoundError as e:
            if is_link:
                return ListItem(
                    entry=Entry(rel, EntryType.BROKEN_SYMLINK, symlink=True),
                    error=BrokenSymlinkError(f"broken symlink '{full}'", full),
                )
            # removed while we were walking
            return ListItem(error=translate_os_error(e, full))
        except OSError as e:
            error = translate_os_error(e, full)
            if isinstance(error, SymlinkCycleError):
                return ListItem(
                    entry=Entry(rel, EntryType.SYMLINK_CYCLE, symlink=True), error=error
                )
            return ListItem(error=error)

        if os.path.isdir(full):
            return ListItem(
                entry=Entry(rel, EntryType.DIRECTORY, modified_time=_mtime(st), symlink=is_link)
            )
        return ListItem(
            entry=Entry(
                rel, EntryType.FILE, size=st.st_size, modified_time=_mtime(st), symlink=is_link
            )
        )

    def _members(self, directory: str, prefix: str) -> List[ListItem]:
        """Members of ``directory`` sorted by canonical name."""
        with os.scandir(directory) as it:
            names = [d.name for d in it]
        keyed = []
        for n in names:
            item = self._child(os.path.join(directory, n), prefix + n)
            keyed.append((item.entry.name if item.entry is not None else prefix + n, item))
        keyed.sort(key=lambda pair: pair[0])
        return [item for _, item in keyed]

    def list(self, recursive: bool) -> Iterator[ListItem]:
        root = self._fs_path()
        try:
            self._stat(root)
        except ClientError as e:
            yield ListItem(error=e)
            return

        if not os.path.isdir(root):
            yield self._child(root, os.path.basename(root))
            return

        try:
            members = self._members(root, "")
        except OSError as e:
            yield ListItem(error=translate_os_error(e, root))
            return

        if not recursive:
            yield from sorted(members, key=lambda item: item.entry.key if item.entry else "")
            return

        # Depth-first over siblings sorted with a trailing "/" on directories,
        # which emits files in the lexical order of their full relative names.
        stack = list(reversed(members))
        while stack:
            item = stack.pop()
            if not item.ok or not item.entry.is_directory:
                yield item
                continue
            directory = os.path.join(root, item.entry.key)
            log.debug("descending into %s", directory)
            try:
                children = self._members(directory, item.entry.name)
            except OSError as e:
                yield ListItem(entry=item.entry, error=translate_os_error(e, directory))
                continue
            stack.extend(reversed(children))

    def _regular_file(self) -> Tuple[str, os.stat_result]:
        path = self._fs_path()
        st = self._stat(path)
        if os.path.isdir(path):
            raise IsDirectoryError(f"'{path}' is a directory", path)
        return path, st

    def get(self) -> Tuple[BinaryIO, int, Optional[str]]:
        path, st = self._regular_file()
        try:
            return open(path, "rb"), st.st_size, None
        except OSError as e:
            raise translate_os_error(e, path)

    def get_partial(self, offset: int, length: int) -> BinaryIO:
        if offset < 0 or length < 0:
            raise InvalidRangeError(offset, length, self.path)
        path, st = self._regular_file()
        if offset + length - 1 > st.st_size - 1:
            raise InvalidRangeError(offset, length, self.path)
        try:
            f = open(path, "rb")
        except OSError as e:
            raise translate_os_error(e, path)
        f.seek(offset)
        return LimitedReader(f, length)

    def put(self, stream: BinaryIO, size: int) -> None:
        path = self._fs_path()
        if self.path.endswith(("/", os.sep)) or os.path.isdir(path):
            raise IsDirectoryError(f"'{path}' is a directory", path)

        parent = os.path.dirname(os.path.abspath(path))
        self.put_container(parent)

        # temp file in the same directory, renamed over the destination
        try:
            fd, tmp = tempfile.mkstemp(prefix=".mcpy-", dir=parent)
        except OSError as e:
            raise translate_os_error(e, parent)

        done = False
        try:
            written = 0
            with os.fdopen(fd, "wb") as out:
                while written < size:
                    chunk = stream.read(min(_COPY_BUFSIZE, size - written))
                    if not chunk:
                        break
                    out.write(chunk)
                    written += len(chunk)
            if written != size:
                raise TransferFailedError(
                    f"short read: expected {size} bytes, got {written}", path
                )
            os.chmod(tmp, _file_mode(path))
            os.replace(tmp, path)
            done = True
        except OSError as e:
            raise translate_os_error(e, path)
        finally:
            if not done:
                try:
                    os.unlink(tmp)
                except FileNotFoundError:
                    pass

    def put_container(self, name: Optional[str] = None) -> None:
        path = name if name is not None else self._fs_path()
        try:
            os.makedirs(path, exist_ok=True)
        except FileExistsError:
            raise ContainerCreateFailedError(f"'{path}' exists and is not a directory", path)
        except OSError as e:
            raise ContainerCreateFailedError(f"{e.strerror or e} '{path}'", path)

    def share_download(self, expiry: timedelta) -> str:
        raise ShareError("sharing is not supported on the local filesystem", self.path)

    def share_upload(
        self, recursive: bool, expiry: timedelta, content_type: Optional[str] = None
    ) -> Dict[str, str]:
        raise ShareError("sharing is not supported on the local filesystem", self.path)
