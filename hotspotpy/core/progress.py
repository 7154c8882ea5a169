"""
Progress reporting and cooperative cancellation.

The analysis calls a monitor at fixed checkpoints (index built, global pass
done, each completed chunk of features, assembly complete) and asks it
whether to stop before every feature. Monitors never affect the numbers.
"""

import logging
import threading
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class ProgressMonitor(Protocol):
    """Interface expected by ``local_g_statistics``."""

    def is_cancelled(self) -> bool:
        ...

    def progress(self, fraction: float, task: str = "") -> None:
        ...


class NullProgressMonitor:
    """Monitor that never cancels and ignores progress."""

    def is_cancelled(self) -> bool:
        return False

    def progress(self, fraction: float, task: str = "") -> None:
        pass


class CancellationToken(NullProgressMonitor):
    """
    Thread-safe cancellation flag.

    Examples
    --------
    >>> token = CancellationToken()
    >>> token.cancel()
    >>> token.is_cancelled()
    True
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()


class LoggingProgressMonitor(CancellationToken):
    """Cancellation token that also logs each progress checkpoint."""

    def __init__(self, log: Optional[logging.Logger] = None):
        super().__init__()
        self._log = log or logger

    def progress(self, fraction: float, task: str = "") -> None:
        self._log.info(f"[{fraction * 100:5.1f}%] {task}")
