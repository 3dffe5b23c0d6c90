"""
Logging configuration for the content vault.

Suppress verbose library output by default for better UX.
"""

import logging
import sys
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Libraries pulled in by the MCP server that log at INFO on every request
_NOISY_LOGGERS = ("mcp", "httpx", "anyio")


def configure_quiet_mode(quiet: bool = True):
    """
    Configure logging to suppress verbose library output.

    Args:
        quiet: If True, suppress verbose output. If False, show everything.
    """
    if quiet:
        warnings.filterwarnings("ignore")
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    else:
        warnings.filterwarnings("default")
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.NOTSET)


def enable_debug_mode():
    """Enable debug-level logging to stderr."""
    warnings.filterwarnings("default")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Add stderr handler if not already present
    if not any(isinstance(h, logging.StreamHandler) and h.stream == sys.stderr
               for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))
        root_logger.addHandler(handler)

    logging.getLogger("vault").setLevel(logging.DEBUG)


def configure_ops_log(store_path) -> Optional[RotatingFileHandler]:
    """Configure a persistent operations log for a store.

    Writes to {store_path}/vault-ops.log using a rotating file handler
    (1MB max, 3 backups). Returns the handler so it can be removed later,
    or None when the store directory is not writable.
    """
    log_path = Path(store_path) / "vault-ops.log"
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            str(log_path),
            maxBytes=1_000_000,
            backupCount=3,
        )
    except OSError:
        return None
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    vault_logger = logging.getLogger("vault")
    vault_logger.addHandler(handler)
    # Let INFO through even in quiet mode
    if vault_logger.level == logging.NOTSET or vault_logger.level > logging.INFO:
        vault_logger.setLevel(logging.INFO)

    return handler


def remove_ops_log(handler: Optional[RotatingFileHandler]) -> None:
    """Detach and close a handler returned by configure_ops_log()."""
    if handler is None:
        return
    logging.getLogger("vault").removeHandler(handler)
    handler.close()
