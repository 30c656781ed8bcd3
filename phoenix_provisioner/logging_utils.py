from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Tuple

from .lib.env import PATHS

DEFAULT_LOG_PATH = PATHS.log_default
FALLBACK_LOG_NAME = "phoenix-provision.log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# The log records device paths, usernames and command output.
LOG_FILE_MODE = 0o600

_ROLE = "_phoenix_role"


def _open_private(path: str) -> logging.FileHandler:
    Path(os.path.dirname(path) or ".").mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, LOG_FILE_MODE)
    os.close(fd)
    # an older log may have been created with wider permissions
    os.chmod(path, LOG_FILE_MODE)
    return logging.FileHandler(path, encoding="utf-8")


def _file_handler(log_path: str) -> Tuple[logging.FileHandler, str]:
    try:
        return _open_private(log_path), log_path
    except OSError:
        fallback = str(Path.cwd() / FALLBACK_LOG_NAME)
        return _open_private(fallback), fallback


def _ours(root: logging.Logger, role: str) -> Optional[logging.Handler]:
    for h in root.handlers:
        if getattr(h, _ROLE, None) == role:
            return h
    return None


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    file_level: int = logging.INFO,
    console_level: Optional[int] = logging.INFO,
) -> str:
    """Attach the provisioning log file (and a console handler) to the root logger.

    The file is created owner-only. If ``log_path`` cannot be opened, e.g.
    /var/log without root, the log goes to ``./phoenix-provision.log``.
    ``console_level=None`` leaves the console alone.

    Calling this again only adjusts levels. Returns the path in use.
    """

    root = logging.getLogger()
    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    file_handler = _ours(root, "file")
    if file_handler is None:
        file_handler, chosen_path = _file_handler(log_path)
        setattr(file_handler, _ROLE, "file")
        file_handler.setFormatter(fmt)
        root.addHandler(file_handler)
        if chosen_path != log_path:
            logging.getLogger(__name__).warning("Cannot write %s; logging to %s", log_path, chosen_path)
    chosen_path = file_handler.baseFilename
    file_handler.setLevel(file_level)

    levels = [file_level]
    if console_level is not None:
        console = _ours(root, "console")
        if console is None:
            console = logging.StreamHandler()
            setattr(console, _ROLE, "console")
            console.setFormatter(fmt)
            root.addHandler(console)
        console.setLevel(console_level)
        levels.append(console_level)

    # handlers filter; the root only has to let the most verbose one through
    root.setLevel(min(levels))
    return chosen_path
