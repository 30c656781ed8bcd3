from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional

from . import __version__
from .config import load_config_bundle, optional_path
from .errors import PreconditionError, ProvisionError
from .lib.command import Executor
from .lib.context import OpsCtx
from .lib.env import PATHS
from .lib.identity import resolve_real_user
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .pipeline import PipelineResult, Step, run_pipeline
from .steps import (
    InfrastructureStep,
    LoadConfigStep,
    ResolveIdentityStep,
    SystemStateStep,
    UserSpaceStep,
)
from .steps.step_10_resolve_identity import Resolver
from .steps.step_20_load_config import ConfigLoader

logger = logging.getLogger(__name__)


def build_steps(
    *,
    loader: ConfigLoader,
    dotfiles_archive: Optional[str] = None,
    resolver: Resolver = resolve_real_user,
) -> List[Step]:
    return [
        ResolveIdentityStep(resolver),
        LoadConfigStep(loader, dotfiles_archive),
        InfrastructureStep(),
        SystemStateStep(),
        UserSpaceStep(),
    ]


def run_provision(
    *,
    loader: ConfigLoader,
    dotfiles_archive: Optional[str] = None,
    ctx: Optional[OpsCtx] = None,
    resolver: Resolver = resolve_real_user,
) -> PipelineResult:
    """Run the whole restoration protocol once."""

    ctx = ctx or OpsCtx(executor=Executor(logging.getLogger("phoenix_provisioner.exec")))
    steps = build_steps(loader=loader, dotfiles_archive=dotfiles_archive, resolver=resolver)
    return run_pipeline(ctx=ctx, steps=steps)


def _provision(args: argparse.Namespace) -> int:
    if os.geteuid() != 0:
        print("Error: this command must be run as root (sudo).", file=sys.stderr)
        return PreconditionError.exit_code

    configure_logging(log_path=args.log, file_level=logging.DEBUG if args.verbose else logging.INFO)

    archive = optional_path(args.dotfiles_archive)
    if archive is not None:
        archive = os.path.abspath(archive)
        if not os.path.isfile(archive):
            logger.error("Dotfiles archive not found: %s", archive)
            return PreconditionError.exit_code

    blueprint_path = args.blueprint
    secrets_path = args.secrets

    def loader():
        return load_config_bundle(blueprint_path, secrets_path, destroy_secrets=not args.keep_secrets)

    logger.info("Initiating Phoenix protocol...")
    result = run_provision(loader=loader, dotfiles_archive=archive)

    if not result.ok:
        err: ProvisionError = result.error or ProvisionError("unknown failure")
        print(f"Aborted in step {result.failed_step}: {err}", file=sys.stderr)
        return err.exit_code

    logger.info("Phoenix protocol complete. Steps: %s", ", ".join(result.session.completed_steps))
    return 0


def _version(args: argparse.Namespace) -> int:
    print(f"Fedora Phoenix {__version__}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="phoenix",
        description="Single-shot provisioner: unlock LUKS, install packages, restore dotfiles.",
    )
    sub = p.add_subparsers(dest="command", required=True)

    prov = sub.add_parser("provision", help="Start the full restoration protocol")
    prov.add_argument("-s", "--secrets", required=True, help="Path to the secrets YAML file")
    prov.add_argument("-b", "--blueprint", default=PATHS.blueprint_default, help="Path to the blueprint YAML file")
    prov.add_argument("-d", "--dotfiles-archive", default=None, help="Path to a dotfiles tarball (.tgz)")
    prov.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to the provisioning log")
    prov.add_argument("--keep-secrets", action="store_true", help="Do not destroy the secrets file after reading it")
    prov.add_argument("-v", "--verbose", action="store_true", help="Record command output in the log file")
    prov.set_defaults(func=_provision)

    ver = sub.add_parser("version", help="Print the version number")
    ver.set_defaults(func=_version)
    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
