from __future__ import annotations

from .context import OpsCtx


def ensure_login_shell(ctx: OpsCtx, username: str, shell: str) -> bool:
    """Set ``username``'s login shell to ``shell`` if the password database disagrees.

    The comparison is an exact string match; ``/bin/zsh`` and ``/usr/bin/zsh``
    are different shells here.
    """

    log = ctx.logger("user")
    log.info("Checking shell for user: %s", username)
    current = ctx.executor.lookup_user(username).shell

    if current == shell:
        log.info("User %s already has shell %s. Skipping.", username, shell)
        return False

    log.info("Changing shell for %s: %s -> %s", username, current, shell)
    ctx.executor.run_as_root(["usermod", "-s", shell, username])
    return True
