from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import pytest

from phoenix_provisioner.errors import CommandError, StateCheckError
from phoenix_provisioner.lib.command import CmdResult, UserInfo
from phoenix_provisioner.lib.context import OpsCtx
from phoenix_provisioner.lib.env import Paths

PROBE = "probe"
ROOT = "root"


def _split_pin(pin: str) -> Tuple[str, str]:
    """Split a pin into (name, version-release) the way dnf records it."""
    parts = pin.rsplit("-", 2)
    if len(parts) == 3 and parts[1][:1].isdigit():
        return parts[0], f"{parts[1]}-{parts[2]}"
    head, _, tail = pin.rpartition("-")
    if head and tail[:1].isdigit():
        return head, f"{tail}-1.fc40"
    return pin, "1.0-1.fc40"


class FakeExecutor:
    """Spy executor with a tiny model of the machine.

    Probes answer from the model; commands update it. Every call is
    recorded as ``(kind, argv)`` where kind is ``"probe"``, ``"root"`` or
    the username for run_as_user.
    """

    def __init__(
        self,
        *,
        mapper_dir: str,
        installed: Iterable[str] = (),
        locked: Iterable[str] = (),
        enabled: Iterable[str] = (),
        active: Iterable[str] = (),
        mounted: Iterable[str] = (),
        users: Optional[Dict[str, UserInfo]] = None,
        passphrase: str = "correct horse",
        lock_list_fails: bool = False,
        lock_format: str = "dnf4",
        mountpoint_rc: Optional[int] = None,
    ):
        self.mapper_dir = mapper_dir
        self.installed: Set[str] = set(installed)
        self.locked: Set[str] = set(locked)
        self.enabled: Set[str] = set(enabled)
        self.active: Set[str] = set(active)
        self.mounted: Set[str] = set(mounted)
        self.users: Dict[str, UserInfo] = dict(users or {})
        self.passphrase = passphrase
        self.lock_list_fails = lock_list_fails
        self.lock_format = lock_format
        self.mountpoint_rc = mountpoint_rc
        self.calls: List[Tuple[str, List[str]]] = []
        self.secrets_seen: List[str] = []

    # -- inspection helpers -------------------------------------------------

    @property
    def actions(self) -> List[Tuple[str, List[str]]]:
        return [c for c in self.calls if c[0] != PROBE]

    def commands(self, name: str) -> List[List[str]]:
        return [argv for kind, argv in self.actions if argv[0] == name]

    def reset_calls(self) -> None:
        self.calls.clear()

    def render_lock_list(self) -> str:
        """``dnf versionlock list`` output in the dnf4 or dnf5 layout."""
        if self.lock_format == "dnf5":
            return "".join(
                "# Added by 'versionlock add' command on 2026-10-18 09:00:00\n"
                f"Package name: {name}\nevr = {evr}\n\n"
                for name, evr in map(_split_pin, sorted(self.locked))
            )
        return "Last metadata expiration check: 0:01:02 ago.\n" + "".join(
            f"{name}-0:{evr}.*\n" for name, evr in map(_split_pin, sorted(self.locked))
        )

    # -- Executor interface -------------------------------------------------

    def lookup_user(self, username: str) -> UserInfo:
        try:
            return self.users[username]
        except KeyError as e:
            raise StateCheckError(f"User {username!r} not found in the password database") from e

    def probe(self, argv: Sequence[str]) -> CmdResult:
        argv = list(argv)
        self.calls.append((PROBE, argv))
        rc, out = 1, ""
        if argv[:2] == ["rpm", "-q"]:
            rc = 0 if argv[2] in self.installed else 1
        elif argv[:3] == ["dnf", "versionlock", "list"]:
            if self.lock_list_fails:
                return CmdResult(argv=argv, returncode=1, stdout="", stderr="No such command: versionlock")
            rc = 0
            out = self.render_lock_list()
        elif argv[:2] == ["systemctl", "is-enabled"]:
            rc = 0 if argv[2] in self.enabled else 1
        elif argv[:2] == ["systemctl", "is-active"]:
            rc = 0 if argv[2] in self.active else 3
        elif argv[:2] == ["mountpoint", "-q"]:
            if self.mountpoint_rc is not None:
                rc = self.mountpoint_rc
            else:
                rc = 0 if argv[2] in self.mounted else 32
        else:
            raise AssertionError(f"unexpected probe {argv}")
        return CmdResult(argv=argv, returncode=rc, stdout=out, stderr="")

    def run_as_root(self, argv, *, env=None, stdin_secret=None) -> CmdResult:
        argv = list(argv)
        self.calls.append((ROOT, argv))
        if stdin_secret is not None:
            self.secrets_seen.append(stdin_secret)

        if argv[:2] == ["dnf", "install"]:
            self.installed.update(a for a in argv[2:] if not a.startswith("-"))
        elif argv[:3] == ["dnf", "versionlock", "add"]:
            self.locked.update(argv[3:])
        elif argv[:3] == ["systemctl", "enable", "--now"]:
            self.enabled.add(argv[3])
            self.active.add(argv[3])
        elif argv[:2] == ["cryptsetup", "open"]:
            if stdin_secret != self.passphrase:
                raise CommandError(argv, 2, "No key available with this passphrase.")
            Path(self.mapper_dir, argv[3]).touch()
        elif argv[0] == "mount":
            self.mounted.add(argv[2])
        elif argv[0] == "usermod":
            name = argv[3]
            self.users[name] = replace(self.users[name], shell=argv[2])
        else:
            raise AssertionError(f"unexpected root command {argv}")
        return CmdResult(argv=argv, returncode=0, stdout="", stderr="")

    def run_as_user(self, username, argv, *, env=None) -> CmdResult:
        argv = list(argv)
        self.lookup_user(username)
        self.calls.append((username, argv))

        if argv[:2] == ["mkdir", "-p"]:
            os.makedirs(argv[2], exist_ok=True)
        elif argv[0] == "tar":
            Path(argv[argv.index("-C") + 1], ".bashrc").write_text("# restored\n")
        elif argv[0] == "stow":
            pass
        elif argv[:2] == ["ln", "-sfn"]:
            src, dest = argv[2], argv[3]
            if os.path.lexists(dest):
                os.remove(dest)
            os.symlink(src, dest)
        elif argv[:2] == ["git", "clone"]:
            os.makedirs(argv[3])
        else:
            raise AssertionError(f"unexpected user command {argv}")
        return CmdResult(argv=argv, returncode=0, stdout="", stderr="")


@pytest.fixture
def quiet_log() -> logging.Logger:
    log = logging.getLogger("phoenix_provisioner.tests")
    log.propagate = True
    return log


@pytest.fixture
def mapper_dir(tmp_path: Path) -> Path:
    d = tmp_path / "dev-mapper"
    d.mkdir()
    return d


@pytest.fixture
def me(tmp_path: Path) -> UserInfo:
    """The test process's own identity, posing as the real user."""
    home = tmp_path / "home" / "ack"
    return UserInfo(username="ack", uid=os.getuid(), gid=os.getgid(), home=str(home), shell="/bin/bash")


@pytest.fixture
def fake(mapper_dir: Path, me: UserInfo) -> FakeExecutor:
    return FakeExecutor(mapper_dir=str(mapper_dir), users={"ack": me})


@pytest.fixture
def ctx(fake: FakeExecutor, mapper_dir: Path, tmp_path: Path, quiet_log: logging.Logger) -> OpsCtx:
    paths = Paths(mapper_dir=str(mapper_dir), home_root=str(tmp_path / "home"))
    return OpsCtx(executor=fake, log=quiet_log, paths=paths)
