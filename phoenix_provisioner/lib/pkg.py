from __future__ import annotations

import re
from typing import List, Sequence, Set

from ..errors import StateCheckError
from .context import OpsCtx
from .env import VERSIONLOCK_PLUGIN


def rpm_installed(ctx: OpsCtx, package: str) -> bool:
    """Return True if ``rpm -q`` knows the package (name or name-version)."""
    return ctx.executor.probe(["rpm", "-q", package]).ok


def missing_packages(ctx: OpsCtx, packages: Sequence[str]) -> List[str]:
    missing: List[str] = []
    for pkg in packages:
        if pkg in missing:
            continue
        if not rpm_installed(ctx, pkg):
            missing.append(pkg)
    return missing


def dnf_install(ctx: OpsCtx, packages: Sequence[str], *, refresh: bool = True) -> None:
    if not packages:
        return
    argv = ["dnf", "install", "-y"]
    if refresh:
        argv.append("--refresh")
    ctx.executor.run_as_root([*argv, *packages])


def ensure_packages(ctx: OpsCtx, packages: Sequence[str]) -> List[str]:
    """Install whatever is missing from ``packages`` in one dnf transaction.

    Returns the packages that were installed, in the order requested.
    """

    log = ctx.logger("pkg")
    if not packages:
        return []

    log.info("Checking status for %d packages...", len(packages))
    missing = missing_packages(ctx, packages)
    if not missing:
        log.info("All packages are already installed")
        return []

    log.info("Found %d missing packages: %s", len(missing), " ".join(missing))
    dnf_install(ctx, missing)
    log.info("Packages installed successfully")
    return missing


_EPOCH = re.compile(r"-\d+:")


def _lock_keys(nevr: str) -> Set[str]:
    """Every spelling a pin can use for one lock entry.

    ``kernel-0:6.5.6-300.fc39`` yields ``kernel``, ``kernel-6.5.6`` and
    ``kernel-6.5.6-300.fc39``, plus the entry as written.
    """

    keys = {nevr}
    bare = _EPOCH.sub("-", nevr)
    keys.add(bare)
    parts = bare.rsplit("-", 2)
    if len(parts) == 3:
        name, version, _release = parts
        keys.update({name, f"{name}-{version}"})
    return keys


def parse_versionlock_list(output: str) -> Set[str]:
    """Collect lock keys from ``dnf versionlock list`` output.

    dnf4 prints one ``name-epoch:version-release.*`` entry per line. dnf5
    prints ``Package name: <name>`` blocks, each followed by ``evr = ...``.
    """

    keys: Set[str] = set()
    name = ""
    for raw in output.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or line.startswith("Last metadata"):
            continue

        if line.startswith("Package name:"):
            name = line.split(":", 1)[1].strip()
            if name:
                keys.add(name)
            continue
        if line.startswith("evr ="):
            if name:
                evr = line.split("=", 1)[1].strip()
                keys.update(_lock_keys(f"{name}-{evr}"))
            continue
        if "=" in line or line.startswith("!"):
            # other dnf5 block fields and dnf4 exclude entries
            continue

        if line.endswith(".*"):
            line = line[:-2]
        keys.update(_lock_keys(line))
    return keys


def versionlock_entries(ctx: OpsCtx) -> Set[str]:
    r = ctx.executor.probe(["dnf", "versionlock", "list"])
    if not r.ok:
        raise StateCheckError(f"Unable to read the versionlock list: {r.stderr.strip()}")
    return parse_versionlock_list(r.stdout)


def is_locked(pin: str, keys: Set[str]) -> bool:
    return pin in keys or _EPOCH.sub("-", pin) in keys


def ensure_pinned_packages(ctx: OpsCtx, packages: Sequence[str]) -> bool:
    """Install and version-lock ``packages``.

    The versionlock plugin is always ensured first, even when every pinned
    package is already in place.
    """

    log = ctx.logger("pkg")
    if not packages:
        return False

    log.info("Processing %d pinned packages...", len(packages))
    log.info("Ensuring %s is installed...", VERSIONLOCK_PLUGIN)
    changed = bool(ensure_packages(ctx, [VERSIONLOCK_PLUGIN]))

    locked = versionlock_entries(ctx)
    to_install = missing_packages(ctx, packages)
    to_lock = [p for p in dict.fromkeys(packages) if not is_locked(p, locked)]

    if not to_install and not to_lock:
        log.info("All pinned packages already installed and locked")
        return changed

    if to_install:
        log.info("Installing pinned packages: %s", " ".join(to_install))
        dnf_install(ctx, to_install, refresh=False)

    if to_lock:
        log.info("Locking package versions: %s", " ".join(to_lock))
        ctx.executor.run_as_root(["dnf", "versionlock", "add", *to_lock])

    log.info("All pinned packages verified")
    return True
