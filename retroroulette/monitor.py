"""
Runtime logging for RetroRoulette.

One process-wide ``retroroulette`` logger writes to a per-day file under the
app data directory. Uncaught exceptions (main thread and worker threads) and
hard crashes end up in the same place, so a failed background refresh or a
game that would not start can be traced after the fact.
"""

from __future__ import annotations

import faulthandler
import logging
import signal
import sys
import threading
import traceback
from datetime import date
from pathlib import Path
from typing import Optional

LOGGER_NAME = "retroroulette"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(threadName)s | %(name)s | %(message)s"

_state = {
    'logger': None,
    'crash_file': None,
    'heartbeat_stop': threading.Event(),
    'saved_hooks': None,
}


def log_file_for(day: Optional[date] = None) -> Path:
    """Daily log file, e.g. ``~/.retroroulette/logs/retroroulette-2024-05-01.log``."""
    from .shared_config import LOGS_DIR

    return Path(LOGS_DIR) / f"{LOGGER_NAME}-{(day or date.today()).isoformat()}.log"


def setup_runtime_monitor(app_name: str = LOGGER_NAME, heartbeat_seconds: int = 0,
                          log_file: Optional[str] = None, echo: bool = False) -> logging.Logger:
    """Configure the app logger once per process. Later calls return the same logger."""
    if _state['logger'] is not None:
        return _state['logger']

    logger = logging.getLogger(app_name)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    log_path = Path(log_file) if log_file else log_file_for()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handlers = [logging.FileHandler(log_path, encoding="utf-8")]
    if echo:
        handlers.append(logging.StreamHandler(sys.stderr))
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    # segfaults and fatal signals bypass logging entirely
    crash_file = log_path.with_name("crash.log").open("a", encoding="utf-8")
    faulthandler.enable(file=crash_file)
    _state['crash_file'] = crash_file

    _state['saved_hooks'] = (sys.excepthook, threading.excepthook,
                             {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)})
    _install_exception_hooks(logger)
    _install_signal_hooks(logger)

    _state['heartbeat_stop'].clear()
    if heartbeat_seconds > 0:
        _start_heartbeat(logger, heartbeat_seconds)

    _state['logger'] = logger
    logger.info("Runtime monitor started, log file: %s", log_path)
    return logger


def stop_runtime_monitor() -> None:
    """Undo ``setup_runtime_monitor``: restore the previous hooks and close the log files."""
    logger = _state['logger']
    if logger is None:
        return
    _state['heartbeat_stop'].set()

    excepthook, thread_hook, signals = _state['saved_hooks']
    sys.excepthook = excepthook
    threading.excepthook = thread_hook
    for sig, handler in signals.items():
        if handler is None:
            continue
        try:
            signal.signal(sig, handler)
        except (ValueError, OSError):
            logger.debug("Signal handler for %s not restored", sig)

    logger.info("Runtime monitor stopped")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    faulthandler.disable()
    _state['crash_file'].close()
    _state.update(logger=None, crash_file=None, saved_hooks=None)


def _echo_traceback(title: str, exc_info) -> None:
    stream = getattr(sys, "__stderr__", None) or sys.stderr
    if stream is None:
        return
    print(f"[RetroRoulette] {title}", file=stream)
    traceback.print_exception(*exc_info, file=stream)
    stream.flush()


def _install_exception_hooks(logger: logging.Logger) -> None:
    def _main_hook(exc_type, exc_value, exc_tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        logger.critical("Unhandled exception", exc_info=(exc_type, exc_value, exc_tb))
        _echo_traceback("Unhandled exception", (exc_type, exc_value, exc_tb))

    def _thread_hook(args: threading.ExceptHookArgs):
        name = args.thread.name if args.thread else "<unknown>"
        exc_info = (args.exc_type, args.exc_value, args.exc_traceback)
        logger.critical("Unhandled exception in thread %s", name, exc_info=exc_info)
        _echo_traceback(f"Unhandled exception in thread {name}", exc_info)

    sys.excepthook = _main_hook
    threading.excepthook = _thread_hook


def _install_signal_hooks(logger: logging.Logger) -> None:
    def _on_signal(signum, _frame):
        logger.warning("Signal %s received, stopping", signum)
        raise KeyboardInterrupt

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(sig, _on_signal)
        except (ValueError, OSError):
            # only the main thread may install handlers
            logger.debug("Signal handler for %s not installed", sig)


def _start_heartbeat(logger: logging.Logger, heartbeat_seconds: int) -> None:
    stop = _state['heartbeat_stop']

    def _beat():
        while not stop.wait(heartbeat_seconds):
            logger.info("heartbeat: %d threads alive", threading.active_count())

    threading.Thread(target=_beat, name="RR-Heartbeat", daemon=True).start()


def monitor_action(action: str, *, logger: Optional[logging.Logger] = None) -> None:
    """Log a user-visible action (spin, play, edit) as ``action: ...``."""
    (logger or logging.getLogger(LOGGER_NAME)).info("action: %s", action)

