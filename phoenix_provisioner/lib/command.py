from __future__ import annotations

import logging
import os
import pwd
import shlex
import subprocess
import threading
from dataclasses import dataclass
from typing import IO, Mapping, Optional, Sequence

from ..errors import CommandError, StateCheckError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass(frozen=True)
class UserInfo:
    username: str
    uid: int
    gid: int
    home: str
    shell: str


def fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def user_info_from_pwd(entry: pwd.struct_passwd) -> UserInfo:
    return UserInfo(
        username=entry.pw_name,
        uid=entry.pw_uid,
        gid=entry.pw_gid,
        home=entry.pw_dir,
        shell=entry.pw_shell,
    )


def _feed_stdin(stream: IO[str], secret: str) -> None:
    # The child's exit status decides success; a closed pipe here is not an error.
    try:
        stream.write(secret)
    except (BrokenPipeError, OSError):
        pass
    finally:
        try:
            stream.close()
        except (BrokenPipeError, OSError):
            pass


class Executor:
    """Runs external commands as root or as a named user.

    - Always logs the command line (never secrets).
    - Captures stdout/stderr; stderr travels with CommandError on failure.
    - Never retries.
    """

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def lookup_user(self, username: str) -> UserInfo:
        try:
            return user_info_from_pwd(pwd.getpwnam(username))
        except KeyError as e:
            raise StateCheckError(f"User {username!r} not found in the password database") from e

    def probe(self, argv: Sequence[str]) -> CmdResult:
        """Run a read-only command for a state check.

        The exit code is returned, not judged. A command that cannot be
        started means the state is unknown.
        """

        argv_list = list(argv)
        self.log.debug("PROBE %s", fmt_argv(argv_list))
        try:
            p = subprocess.run(
                argv_list,
                text=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise StateCheckError(f"Unable to run state probe {fmt_argv(argv_list)}: {e}") from e
        return CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)

    def run_as_root(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        stdin_secret: str | None = None,
    ) -> CmdResult:
        argv_list = list(argv)
        self.log.info("CMD %s", fmt_argv(argv_list))
        full_env = dict(os.environ, **(env or {}))

        if stdin_secret is not None:
            return self._run_with_secret(argv_list, full_env, stdin_secret)

        try:
            p = subprocess.run(
                argv_list,
                text=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=full_env,
            )
        except OSError as e:
            raise CommandError(argv_list, None, str(e)) from e
        return self._finish(argv_list, p.returncode, p.stdout, p.stderr)

    def run_as_user(
        self,
        username: str,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
    ) -> CmdResult:
        """Run a command with the credentials and HOME of ``username``.

        The child gets the user's uid/gid and no supplementary groups, so
        anything it creates belongs to that user.
        """

        info = self.lookup_user(username)
        argv_list = list(argv)
        self.log.info("CMD (as %s) %s", username, fmt_argv(argv_list))

        full_env = dict(os.environ)
        full_env["HOME"] = info.home
        full_env.update(env or {})

        cwd = info.home if os.path.isdir(info.home) else None
        try:
            p = subprocess.run(
                argv_list,
                text=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=full_env,
                cwd=cwd,
                user=info.uid,
                group=info.gid,
                extra_groups=[],
            )
        except OSError as e:
            raise CommandError(argv_list, None, str(e), as_user=username) from e
        return self._finish(argv_list, p.returncode, p.stdout, p.stderr, as_user=username)

    def _run_with_secret(self, argv: list[str], env: Mapping[str, str], secret: str) -> CmdResult:
        try:
            proc = subprocess.Popen(
                argv,
                text=True,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                env=dict(env),
            )
        except OSError as e:
            raise CommandError(argv, None, str(e)) from e

        assert proc.stdin is not None and proc.stdout is not None
        writer = threading.Thread(target=_feed_stdin, args=(proc.stdin, secret), daemon=True)
        writer.start()

        output = proc.stdout.read()
        proc.stdout.close()
        returncode = proc.wait()
        return self._finish(argv, returncode, "", output)

    def _finish(
        self,
        argv: list[str],
        returncode: int,
        stdout: str,
        stderr: str,
        *,
        as_user: str | None = None,
    ) -> CmdResult:
        if stdout:
            self.log.debug("STDOUT %s", stdout.strip())
        if stderr:
            self.log.debug("STDERR %s", stderr.strip())

        if returncode != 0:
            raise CommandError(argv, returncode, stderr, as_user=as_user)

        return CmdResult(argv=argv, returncode=returncode, stdout=stdout, stderr=stderr)
