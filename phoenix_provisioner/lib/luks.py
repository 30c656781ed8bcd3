from __future__ import annotations

import os

from ..errors import ProvisionError, StateCheckError
from .context import OpsCtx


def is_unlocked(ctx: OpsCtx, mapper_name: str) -> bool:
    path = ctx.mapper_path(mapper_name)
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        raise StateCheckError(f"Failed to stat {path}: {e}") from e
    return True


# mountpoint(1) exits 32 when the path is not a mountpoint; any other
# non-zero status means it could not tell.
NOT_A_MOUNTPOINT = 32


def is_mounted(ctx: OpsCtx, mount_point: str) -> bool:
    # mountpoint(1) fails outright on a missing path
    if not os.path.lexists(mount_point):
        return False
    r = ctx.executor.probe(["mountpoint", "-q", mount_point])
    if r.returncode == 0:
        return True
    if r.returncode == NOT_A_MOUNTPOINT:
        return False
    raise StateCheckError(f"Unable to tell whether {mount_point} is mounted (mountpoint exited {r.returncode})")


def ensure_unlocked(ctx: OpsCtx, device: str, mapper_name: str, passphrase: str) -> bool:
    """Open the LUKS device unless its mapper node already exists.

    The passphrase goes to cryptsetup on stdin, never on the command line.
    """

    log = ctx.logger("luks")
    if is_unlocked(ctx, mapper_name):
        log.info("Device %s is already unlocked. Skipping.", mapper_name)
        return False

    log.info("Unlocking %s as %s", device, mapper_name)
    ctx.executor.run_as_root(
        ["cryptsetup", "open", device, mapper_name, "--type", "luks"],
        stdin_secret=passphrase,
    )

    if not is_unlocked(ctx, mapper_name):
        raise StateCheckError(
            f"cryptsetup reported success but {ctx.mapper_path(mapper_name)} does not exist"
        )
    log.info("LUKS unlocked successfully")
    return True


def ensure_mounted(ctx: OpsCtx, mapper_name: str, mount_point: str) -> bool:
    """Mount the unlocked mapper device on ``mount_point``.

    Nothing is done (and nothing raised) while the mapper node is absent:
    only an unlocked volume is ever mounted.
    """

    log = ctx.logger("luks")
    if not is_unlocked(ctx, mapper_name):
        log.warning("Mapper %s is not unlocked; not mounting %s", mapper_name, mount_point)
        return False

    if is_mounted(ctx, mount_point):
        log.info("%s is already mounted. Skipping.", mount_point)
        return False

    try:
        os.makedirs(mount_point, mode=0o755, exist_ok=True)
    except OSError as e:
        raise ProvisionError(f"Failed to create mount point {mount_point}: {e}") from e

    device = ctx.mapper_path(mapper_name)
    log.info("Mounting %s -> %s", device, mount_point)
    ctx.executor.run_as_root(["mount", device, mount_point])
    log.info("Mount completed successfully")
    return True
