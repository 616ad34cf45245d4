# chess_reviewer/utils/signal_manager.py
"""
Manages system signal handling for cancelling a review run.

This module provides a context manager that turns SIGINT (Ctrl+C) and SIGTERM
into a set cancel event. Workers poll that event between engine reads, so a
cancelled run closes its in-flight engine sessions instead of leaking them.
Original signal handlers are always restored on exit.
"""
import logging
import signal
import sys
import threading
from types import FrameType
from typing import Callable, List, Optional, Tuple, TypeAlias, Union

from chess_reviewer.config import settings

logger = logging.getLogger(settings.APP_NAME + ".SignalManager")

Handler: TypeAlias = Union[Callable[[int, Optional[FrameType]], None], int, None]


class SignalManager:
    """
    A context manager that sets a cancel event when a shutdown signal arrives.

    Usage:
        cancel_event = threading.Event()
        with SignalManager(cancel_event):
            provider.evaluate_positions(positions, depth, cancel_event=cancel_event)

    A second signal forces an immediate exit.
    """

    def __init__(self, cancel_event: threading.Event, exit_code: int = 130):
        """
        Args:
            cancel_event: Set when a shutdown signal is caught.
            exit_code: Process exit code used when a second signal forces exit.
        """
        self.cancel_event: threading.Event = cancel_event
        self.exit_code = exit_code
        self._original_handlers: List[Tuple[int, Handler]] = []

    @staticmethod
    def _get_signals_to_handle() -> List[signal.Signals]:
        signals_to_handle = [signal.SIGINT]
        if hasattr(signal, "SIGTERM"):  # not on Windows
            signals_to_handle.append(signal.SIGTERM)
        return signals_to_handle

    def __enter__(self):
        self._original_handlers = []
        for sig in self._get_signals_to_handle():
            try:
                self._original_handlers.append((sig, signal.getsignal(sig)))
                signal.signal(sig, self._signal_handler)
            except (ValueError, OSError, RuntimeError) as e:
                # Only the main thread may install handlers.
                logger.warning(f"Could not set signal handler for {sig.name}: {e}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for sig_num, handler in self._original_handlers:
            try:
                if signal.getsignal(sig_num) == self._signal_handler:
                    signal.signal(sig_num, handler)
            except (ValueError, OSError, RuntimeError) as e:
                logger.warning(
                    f"Error restoring original handler for {signal.Signals(sig_num).name}: {e}"
                )
        self._original_handlers = []
        logger.debug("Original signal handlers restored.")

    def _signal_handler(self, signum: int, frame: Optional[FrameType]) -> None:
        signal_name = signal.Signals(signum).name
        if not self.cancel_event.is_set():
            logger.warning(f"Signal {signal_name} received. Cancelling the review run...")
            logger.info("In-flight engine searches will be stopped. Press Ctrl+C again to force quit.")
            self.cancel_event.set()
        else:
            logger.critical(f"Second signal {signal_name} received. Forcing exit.")
            sys.exit(self.exit_code)
