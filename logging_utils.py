"""
Activity Logging for Polish It
==============================

Provides the activity log the improve pipeline writes to: timestamped lines
on a named channel, colored phase headers and prompt/response dumps gated by
verbosity. The log is an ordinary object handed to the components that use
it. ``open()`` attaches the console (and optional file) output and
``close()`` detaches it; nothing is created lazily at import time.
IMPORTANT: No emojis in console output (Windows encoding issues).
"""

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, TextIO, TYPE_CHECKING

from colorama import Fore, Style, init
from colorama.ansitowin32 import AnsiToWin32

if TYPE_CHECKING:
    from usage_tracking import UsageInfo

# Initialize colorama for Windows
init(autoreset=True)


class Phase:
    """Phase constants for one improve run"""
    RUN = "IMPROVE_RUN"
    SELECTION = "SELECTION"


PHASE_COLORS = {
    Phase.RUN: Fore.CYAN,
    Phase.SELECTION: Fore.GREEN,
}

# Text-based icons, no emojis
PHASE_ICONS = {
    Phase.RUN: "[RUN]",
    Phase.SELECTION: "[SEL]",
}


class IsoTimestampFormatter(logging.Formatter):
    """Formats records as ``[2024-12-01T10:00:00.000000+00:00] message``."""

    def __init__(self):
        super().__init__("[%(asctime)s] %(message)s")

    def formatTime(self, record, datefmt=None):
        return datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()


class PlainTextFormatter(IsoTimestampFormatter):
    """Same layout as the console, with colorama escape codes removed (log files)."""

    def format(self, record):
        return AnsiToWin32.ANSI_CSI_RE.sub("", super().format(record))


class TimingTracker:
    """Track timing for phases"""

    def __init__(self):
        self._start_times: Dict[str, float] = {}

    def start(self, key: str):
        self._start_times[key] = time.time()

    def end(self, key: str) -> float:
        """End timing and return elapsed seconds"""
        if key not in self._start_times:
            return 0.0
        elapsed = time.time() - self._start_times.pop(key)
        return elapsed


class ActivityLog:
    """
    Named output channel for one improve session.

    Usage:
        with ActivityLog("Polish It", extra_verbose=True) as activity:
            with activity.phase(Phase.SELECTION, sub_label="1/2"):
                activity.info("Target range: ...")
                activity.log_prompt("gpt-4o-mini", system_prompt, user_prompt)

    Messages written while the log is closed still reach the ``polish_it``
    logger hierarchy, so library users who configure ``logging`` themselves
    can skip ``open()`` entirely.
    """

    def __init__(
        self,
        name: str = "Polish It",
        verbose: bool = False,
        extra_verbose: bool = False,
        log_file: Optional[str] = None,
        stream: Optional[TextIO] = None,
    ):
        self.name = name
        self.verbose = verbose or extra_verbose
        self.extra_verbose = extra_verbose
        self.log_file = log_file
        self.stream = stream
        self.logger = logging.getLogger(f"polish_it.activity.{name.lower().replace(' ', '_')}")
        self.timing_tracker = TimingTracker()
        self._handlers: List[logging.Handler] = []
        self._current_phase: Optional[str] = None
        self._phase_stack: List[Optional[str]] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return bool(self._handlers)

    def open(self) -> "ActivityLog":
        """Attach the channel's outputs. Opening an open log does nothing."""
        if self.is_open:
            return self

        formatter = IsoTimestampFormatter()
        console = logging.StreamHandler(self.stream or sys.stderr)
        console.setFormatter(formatter)
        self._handlers.append(console)

        if self.log_file:
            file_handler = logging.FileHandler(self.log_file, encoding="utf-8")
            file_handler.setFormatter(PlainTextFormatter())
            self._handlers.append(file_handler)

        for handler in self._handlers:
            self.logger.addHandler(handler)
        self.logger.setLevel(logging.DEBUG if self.verbose else logging.INFO)
        self.logger.propagate = False
        return self

    def close(self) -> None:
        """Detach and close the channel's outputs."""
        for handler in self._handlers:
            self.logger.removeHandler(handler)
            handler.close()
        self._handlers = []
        self.logger.propagate = True

    def __enter__(self) -> "ActivityLog":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    @contextmanager
    def phase(self, phase_name: str, sub_label: Optional[str] = None):
        """Context manager for phase tracking with automatic timing"""
        self._phase_stack.append(self._current_phase)
        self._current_phase = phase_name
        timing_key = f"phase_{phase_name}_{len(self._phase_stack)}"
        self.timing_tracker.start(timing_key)

        color = PHASE_COLORS.get(phase_name, Fore.WHITE)
        icon = PHASE_ICONS.get(phase_name, "[???]")
        sub_str = f" - {sub_label}" if sub_label else ""
        self.logger.info(f"{color}{'=' * 60}{Style.RESET_ALL}")
        self.logger.info(f"{color}{icon} {phase_name}{sub_str}{Style.RESET_ALL}")
        try:
            yield self
        finally:
            elapsed = self.timing_tracker.end(timing_key)
            elapsed_str = f"{elapsed:.2f}s" if elapsed > 0 else "N/A"
            self.logger.info(
                f"{color}{icon} {phase_name} COMPLETED (Elapsed: {elapsed_str}){Style.RESET_ALL}"
            )
            self._current_phase = self._phase_stack.pop() if self._phase_stack else None

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def info(self, message: str):
        """Log info message with current phase context"""
        if self._current_phase:
            color = PHASE_COLORS.get(self._current_phase, Fore.WHITE)
            icon = PHASE_ICONS.get(self._current_phase, "[???]")
            self.logger.info(f"{color}{icon}{Style.RESET_ALL} {message}")
        else:
            self.logger.info(message)

    def debug(self, message: str):
        """Log debug message (only if verbose)"""
        if self.verbose:
            self.logger.debug(f"{Fore.WHITE}{Style.DIM}{message}{Style.RESET_ALL}")

    def warning(self, message: str):
        self.logger.warning(f"{Fore.YELLOW}[WARN] {message}{Style.RESET_ALL}")

    def error(self, message: str):
        self.logger.error(f"{Fore.RED}{Style.BRIGHT}[ERROR] {message}{Style.RESET_ALL}")

    def log_prompt(self, model: str, system_prompt: Optional[str], user_prompt: Optional[str] = None):
        """Log full prompt (only if extra_verbose)"""
        if not self.extra_verbose:
            return

        separator = "~" * 60
        self.logger.info(separator)
        self.logger.info(f"[EXTRA_VERBOSE] PROMPT ({model})")
        if system_prompt:
            self.logger.info(f"{Fore.CYAN}[SYSTEM PROMPT]{Style.RESET_ALL}")
            self.logger.info(system_prompt)
        if user_prompt:
            self.logger.info(f"{Fore.GREEN}[USER PROMPT]{Style.RESET_ALL}")
            self.logger.info(user_prompt)
        self.logger.info(separator)

    def log_response(self, label: str, response: str):
        """Log a response body (only if extra_verbose)"""
        if not self.extra_verbose:
            return
        self.logger.info(f"{Fore.GREEN}[{label}]{Style.RESET_ALL}")
        self.logger.info(response)

    def log_usage(self, usage: "UsageInfo"):
        self.info(f"Input tokens: {usage.prompt_tokens}")
        self.info(f"Output tokens: {usage.completion_tokens}")
        self.info(f"Total tokens: {usage.total_tokens}")
        self.info(
            f"Context window: {usage.total_tokens:,} / {usage.context_window_size:,} "
            f"({usage.context_usage_percent:.2f}%)"
        )
        self.info(f"Estimated cost: ${usage.estimated_cost:.6f}")

    def log_summary(self, summary: Optional[Dict[str, Any]]):
        if not summary:
            return
        totals = summary["grand_totals"]
        self.info(
            f"Run totals: {totals['total_tokens']} tokens across "
            f"{len(summary['selections'])} selection(s), estimated cost ${totals['cost']:.6f}"
        )


def create_activity_log(
    name: str = "Polish It",
    verbose: bool = False,
    extra_verbose: bool = False,
    log_file: Optional[str] = None,
) -> ActivityLog:
    """Create an ActivityLog from explicit settings (not yet opened)"""
    return ActivityLog(name=name, verbose=verbose, extra_verbose=extra_verbose, log_file=log_file)
