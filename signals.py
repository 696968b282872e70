import signal

# SIGBREAK is Ctrl+Break / console close on Windows; absent elsewhere
SHUTDOWN_SIGNALS = tuple(
    sig for sig in (getattr(signal, name, None) for name in ("SIGINT", "SIGTERM", "SIGBREAK"))
    if sig is not None
)


class ShutdownFlag:
    """Set once when shutdown is requested; never reset.

    request() only stores a bool so it is safe to call from a signal handler.
    """

    def __init__(self):
        self._requested = False

    def request(self) -> bool:
        """Return True if this call is the one that requested shutdown."""
        first = not self._requested
        self._requested = True
        return first

    def is_set(self) -> bool:
        return self._requested


def install_signal_handlers(flag, signals=SHUTDOWN_SIGNALS):
    """Point every shutdown signal at the flag and return the previous handlers."""
    def handle_signal(signum, frame):
        flag.request()

    previous = {}
    for sig in signals:
        previous[sig] = signal.signal(sig, handle_signal)
    return previous
