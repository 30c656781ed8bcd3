from __future__ import annotations

from typing import List, Sequence

from .context import OpsCtx


def service_enabled(ctx: OpsCtx, service: str) -> bool:
    return ctx.executor.probe(["systemctl", "is-enabled", service]).ok


def service_active(ctx: OpsCtx, service: str) -> bool:
    return ctx.executor.probe(["systemctl", "is-active", service]).ok


def ensure_services(ctx: OpsCtx, services: Sequence[str]) -> List[str]:
    """Enable and start every service that is not both enabled and active.

    Returns the services that were acted on.
    """

    log = ctx.logger("systemd")
    if not services:
        return []

    log.info("Processing %d systemd services...", len(services))
    started: List[str] = []
    for svc in services:
        if svc in started:
            continue
        if service_enabled(ctx, svc) and service_active(ctx, svc):
            log.info("Service %s already enabled and running. Skipping.", svc)
            continue

        log.info("Enabling and starting service: %s", svc)
        ctx.executor.run_as_root(["systemctl", "enable", "--now", svc])
        started.append(svc)

    log.info("All services verified")
    return started
