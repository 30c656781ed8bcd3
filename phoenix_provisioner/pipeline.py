from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from .errors import ProvisionError
from .lib.context import OpsCtx
from .session import Phase, Session

logger = logging.getLogger(__name__)


class Step(Protocol):
    """A single idempotent stage."""

    step_id: str
    reaches: Phase

    def run(self, ctx: OpsCtx, session: Session) -> Session:
        ...


@dataclass(frozen=True)
class PipelineResult:
    session: Session
    ran_steps: List[str]
    failed_step: Optional[str] = None
    error: Optional[ProvisionError] = None

    @property
    def ok(self) -> bool:
        return self.session.phase is Phase.COMPLETE


def run_pipeline(
    *,
    ctx: OpsCtx,
    steps: Sequence[Step],
    session: Optional[Session] = None,
) -> PipelineResult:
    """Run stages strictly in order; the first ProvisionError aborts the run.

    Stages already finished are left as they are. Re-running is the recovery
    path, since every stage re-checks before acting.
    """

    session = session or Session()
    ran: List[str] = []

    for step in steps:
        ctx.log.info("Running step %s", step.step_id)
        try:
            session = step.run(ctx, session)
        except ProvisionError as e:
            ctx.log.error("Step %s failed: %s", step.step_id, e)
            return PipelineResult(
                session=session.aborted(),
                ran_steps=ran,
                failed_step=step.step_id,
                error=e,
            )
        if session.phase is not step.reaches:
            raise RuntimeError(f"Step {step.step_id} ended in {session.phase.value}, expected {step.reaches.value}")
        ran.append(step.step_id)

    session = session.advance(Phase.COMPLETE)
    ctx.log.info("Provisioning complete")
    return PipelineResult(session=session, ran_steps=ran)
