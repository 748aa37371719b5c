from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .context import UpgradeCtx
from .errors import StageFailed, UpgradeError

logger = logging.getLogger(__name__)


class Step(Protocol):
    """A single idempotent stage."""

    step_id: str

    def run(self, ctx: UpgradeCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        ...


@dataclass(frozen=True)
class PipelineResult:
    state: Dict[str, Any]
    ran_steps: List[str]


def run_pipeline(
    *,
    ctx: UpgradeCtx,
    state: Dict[str, Any],
    steps: Sequence[Step],
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
) -> PipelineResult:
    """Run steps strictly in order; the first fatal error stops the run.

    Errors leave here as UpgradeError with `stage` set to the failing step.
    """

    known = [s.step_id for s in steps]
    for name, value in (("start_at", start_at), ("stop_after", stop_after)):
        if value is not None and value not in known:
            raise ValueError(f"Unknown step for {name}: {value} (expected one of {', '.join(known)})")

    ran: List[str] = []
    started = start_at is None

    for step in steps:
        if not started:
            if step.step_id == start_at:
                started = True
            elif not getattr(step, "always_run", False):
                logger.info("Skipping step %s (before %s)", step.step_id, start_at)
                continue

        state.setdefault("execution", {})["current_step"] = step.step_id
        logger.info("Running step %s", step.step_id)
        try:
            state = step.run(ctx, state)
        except UpgradeError as e:
            if e.stage is None:
                e.stage = step.step_id
            raise
        except Exception as e:
            raise StageFailed(str(e), stage=step.step_id) from e
        ran.append(step.step_id)
        state.setdefault("execution", {}).setdefault("ran_steps", []).append(step.step_id)

        if stop_after is not None and step.step_id == stop_after:
            logger.info("Stopping after %s", stop_after)
            break

    state.setdefault("execution", {})["current_step"] = None
    return PipelineResult(state=state, ran_steps=ran)
