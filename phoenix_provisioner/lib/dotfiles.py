from __future__ import annotations

import errno
import os
from typing import Sequence

from ..errors import StateCheckError
from .context import OpsCtx


def _dir_has_entries(path: str) -> bool:
    try:
        with os.scandir(path) as it:
            return any(True for _ in it)
    except FileNotFoundError:
        return False
    except OSError as e:
        raise StateCheckError(f"Unable to inspect {path}: {e}") from e


def extract_archive(ctx: OpsCtx, archive_path: str, dest_dir: str, username: str) -> bool:
    """Unpack a .tar.gz into ``dest_dir`` as ``username``.

    A non-empty destination counts as already extracted.
    """

    log = ctx.logger("dotfiles")
    log.info("Checking archive extraction: %s -> %s (as %s)", archive_path, dest_dir, username)

    if _dir_has_entries(dest_dir):
        log.info("Destination %s is non-empty. Skipping extraction.", dest_dir)
        return False

    ctx.executor.run_as_user(username, ["mkdir", "-p", dest_dir])
    log.info("Extracting %s to %s", archive_path, dest_dir)
    ctx.executor.run_as_user(username, ["tar", "-xzf", archive_path, "-C", dest_dir])
    log.info("Archive extracted successfully")
    return True


def stow_packages(ctx: OpsCtx, source_dir: str, target_dir: str, packages: Sequence[str], username: str) -> int:
    """Restow each package; ``stow -R`` converges on its own, so there is no check."""

    log = ctx.logger("dotfiles")
    if not packages:
        return 0

    log.info("Running stow to deploy %d packages...", len(packages))
    for pkg in packages:
        log.info("Deploying package: %s", pkg)
        ctx.executor.run_as_user(username, ["stow", "-d", source_dir, "-t", target_dir, "-R", pkg])

    log.info("Stow deployment completed successfully")
    return len(packages)


def ensure_symlink(ctx: OpsCtx, src: str, dest: str, username: str) -> bool:
    """Point ``dest`` at ``src`` (exact string match on the link target)."""

    log = ctx.logger("dotfiles")
    log.info("Ensuring symlink: %s -> %s (as %s)", dest, src, username)

    try:
        current = os.readlink(dest)
    except FileNotFoundError:
        current = None
    except OSError as e:
        if e.errno != errno.EINVAL:
            raise StateCheckError(f"Unable to read link {dest}: {e}") from e
        if os.path.isdir(dest):
            # ln -sfn would drop the link inside the directory.
            raise StateCheckError(f"{dest} is a real directory, refusing to replace it with a symlink") from e
        current = None

    if current == src:
        log.info("Symlink %s already correct. Skipping.", dest)
        return False

    ctx.executor.run_as_user(username, ["ln", "-sfn", src, dest])
    log.info("Symlink %s created", dest)
    return True
