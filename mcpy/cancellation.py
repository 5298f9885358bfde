import threading


class CancellationToken:
    """Stops a copy batch from scheduling more work.

    Units that have not started are skipped once the token is cancelled;
    transfers already writing run to completion. Retry back-off waits on the
    token, so a cancelled batch does not sit out its retry delays.

    Example:
        token = CancellationToken()
        results = execute(copy_type, sources, target, CopyOptions(cancel=token))

        # On Ctrl-C, from the main thread
        token.cancel()
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; True if cancelled meanwhile."""
        if timeout <= 0:
            return self._event.is_set()
        return self._event.wait(timeout)
