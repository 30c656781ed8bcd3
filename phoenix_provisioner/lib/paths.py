from __future__ import annotations

import os


def expand_path(path: str, home: str) -> str:
    """Expand ``~`` and ``~/...`` against ``home``.

    ``$HOME`` is not consulted; under sudo it belongs to root.
    ``~user`` forms are returned unchanged.
    """

    if not path.startswith("~"):
        return path
    if path == "~":
        return home
    if path.startswith("~/"):
        return os.path.join(home, path[2:])
    return path
