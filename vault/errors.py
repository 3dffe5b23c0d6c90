"""
Crash log for the vault CLI.

Unexpected exceptions get a one-line message on stderr; the traceback is
appended to a log file in the store directory.
"""

import os
import traceback
from pathlib import Path
from typing import Optional

from .config import get_default_store_path
from .types import utc_now

ERROR_LOG_FILENAME = "vault-errors.log"


def log_exception(exc: BaseException, context: str = "",
                  store_path: Optional[Path] = None) -> Path:
    """
    Append ``exc`` and its traceback to the store's error log.

    Args:
        exc: The exception that escaped the command
        context: Where it happened (e.g. "vault CLI")
        store_path: Store directory; defaults to the one the CLI resolves

    Returns:
        Path of the error log, whether or not the write succeeded
    """
    store = Path(store_path) if store_path is not None else get_default_store_path()
    log_path = store.expanduser() / ERROR_LOG_FILENAME
    header = f"[{utc_now()}] {context}".rstrip()
    entry = f"\n{'=' * 60}\n{header}\n" + "".join(traceback.format_exception(exc))
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        # Tracebacks can quote note text, so the log is private to the user
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a", encoding="utf-8") as f:
            f.write(entry)
    except OSError:
        pass
    return log_path
