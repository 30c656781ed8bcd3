from __future__ import annotations

import os

from .context import OpsCtx


def clone_repo(ctx: OpsCtx, url: str, dest: str, username: str) -> bool:
    """Clone ``url`` into ``dest`` as ``username`` unless ``dest`` already exists.

    An existing destination is trusted as-is; it is not fetched or checked
    against ``url``.
    """

    log = ctx.logger("git")
    if os.path.lexists(dest):
        log.info("Destination %s already exists. Skipping clone.", dest)
        return False

    log.info("Cloning %s to %s (as %s)", url, dest, username)
    ctx.executor.run_as_user(username, ["git", "clone", url, dest])
    log.info("Repository cloned successfully")
    return True
