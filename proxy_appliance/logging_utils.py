from __future__ import annotations

import logging
from pathlib import Path

DEFAULT_LOG_PATH = "/var/log/proxy-appliance-firstboot.log"
FALLBACK_LOG_NAME = "proxy-appliance-firstboot.log"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"

_CONFIGURED_ATTR = "_proxy_appliance_log_path"


def _file_handler(path: str) -> logging.FileHandler:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, encoding="utf-8")


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Configure the root logger once and return the log file actually used.

    Every decision goes to the provisioning log. Secrets (PSK, database
    password, generated account password) are never handed to a logger;
    they only reach the operator console.

    Early in first boot the log directory may not be writable yet, in which
    case a file in the working directory is used instead. Once the log
    directory is bound onto the data partition, call
    ``reopen_file_handlers()`` so the log follows the bind.
    """

    root = logging.getLogger()
    root.setLevel(level)

    configured = getattr(root, _CONFIGURED_ATTR, None)
    if configured:
        return configured

    try:
        handler = _file_handler(log_path)
        actual = log_path
    except OSError:
        actual = str(Path.cwd() / FALLBACK_LOG_NAME)
        handler = _file_handler(actual)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    if also_console:
        # The console belongs to the operator prompts; only problems go there.
        console = logging.StreamHandler()
        console.setLevel(logging.WARNING)
        console.setFormatter(formatter)
        root.addHandler(console)

    setattr(root, _CONFIGURED_ATTR, actual)
    logging.getLogger(__name__).info("Logging to %s (requested %s)", actual, log_path)
    return actual


def reopen_file_handlers() -> int:
    """Close and reopen every file handler on the root logger.

    After a bind mount over the log directory, open handlers still point at
    the file on the now-hidden underlying directory.
    """

    count = 0
    for h in logging.getLogger().handlers:
        if isinstance(h, logging.FileHandler):
            h.acquire()
            try:
                if h.stream is not None:
                    h.stream.close()
                h.stream = h._open()
            finally:
                h.release()
            count += 1
    logging.getLogger(__name__).info("Reopened %d log file handler(s)", count)
    return count
