"""Cooperative, job-scoped cancellation."""
from __future__ import annotations

import logging
import threading

from ..core.errors import JobCancelled


logger = logging.getLogger(__name__)


class CancellationToken:
    """Cancellation flag for one job.

    The controller calls :meth:`cancel`; the runner and its collaborators call
    :meth:`raise_if_cancelled` at checkpoints. Work in progress between two
    checkpoints (e.g. a single file copy) always runs to completion.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, checkpoint: str = "") -> None:
        """Raise JobCancelled if cancellation was requested."""
        if self._event.is_set():
            logger.debug("Cancellation observed at %s", checkpoint or "checkpoint")
            raise JobCancelled(checkpoint)
