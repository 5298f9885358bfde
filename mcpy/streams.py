"""Readers used to cap how much of an object is read at once."""

import io
from typing import BinaryIO, Callable, Optional, Tuple, Type


class LimitedReader(io.RawIOBase):
    """Reads at most ``limit`` bytes from an underlying stream.

    Exceptions of the ``errors`` types raised by the underlying stream are
    re-raised as ``translate(error)``.
    """

    def __init__(
        self,
        stream: BinaryIO,
        limit: int,
        errors: Tuple[Type[Exception], ...] = (),
        translate: Optional[Callable[[Exception], Exception]] = None,
    ) -> None:
        if errors and translate is None:
            raise ValueError("errors need a translate function")
        self._stream = stream
        self._remaining = limit
        self._errors = errors
        self._translate = translate

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self._remaining <= 0:
            return 0
        view = memoryview(buffer)[: self._remaining]
        try:
            data = self._stream.read(len(view))
        except self._errors as e:
            raise self._translate(e) from e
        n = len(data)
        view[:n] = data
        self._remaining -= n
        return n

    def close(self) -> None:
        if not self.closed:
            self._stream.close()
        super().close()


class WindowedReader(io.RawIOBase):
    """Reads an object of known size as a chain of ranged reads.

    ``open_window(offset, length)`` is called lazily for each window, so at
    most one window is open at a time.
    """

    def __init__(
        self,
        open_window: Callable[[int, int], BinaryIO],
        size: int,
        window: int,
    ) -> None:
        if window <= 0:
            raise ValueError("window must be positive")
        self._open_window = open_window
        self._size = size
        self._window = window
        self._offset = 0
        self._current: Optional[BinaryIO] = None

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        view = memoryview(buffer)
        while True:
            if self._current is None:
                if self._offset >= self._size:
                    return 0
                length = min(self._window, self._size - self._offset)
                self._current = self._open_window(self._offset, length)
                self._offset += length
            data = self._current.read(len(view))
            if data:
                view[: len(data)] = data
                return len(data)
            self._current.close()
            self._current = None

    def close(self) -> None:
        if self._current is not None:
            self._current.close()
            self._current = None
        super().close()
