"""Provisioning errors.

The core only raises these; the CLI decides how they are reported.
"""

from __future__ import annotations

import shlex
from typing import Sequence


class ProvisionError(Exception):
    """Base error for a failed provisioning run."""

    exit_code = 1


class PreconditionError(ProvisionError):
    """A requirement for starting (or continuing) the run is not met."""

    exit_code = 2


class ConfigError(PreconditionError):
    """Blueprint or secrets file missing, malformed or incomplete."""


class CommandError(ProvisionError, RuntimeError):
    """An external command exited non-zero or could not be spawned."""

    exit_code = 3

    def __init__(self, argv: Sequence[str], returncode: int | None, stderr: str = "", *, as_user: str | None = None):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr or ""
        self.as_user = as_user
        super().__init__(self._message())

    def _message(self) -> str:
        who = f" (as {self.as_user})" if self.as_user else ""
        cmd = " ".join(shlex.quote(a) for a in self.argv)
        if self.returncode is None:
            head = f"Command could not be started{who}: {cmd}"
        else:
            head = f"Command failed ({self.returncode}){who}: {cmd}"
        detail = self.stderr.strip()
        return f"{head}\n{detail}" if detail else head


class StateCheckError(ProvisionError):
    """Current state could not be determined."""

    exit_code = 4
