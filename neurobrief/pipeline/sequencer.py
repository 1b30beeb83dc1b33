"""
Run the fixed phase sequence for one date with checkpoint resume.

Each phase is looked up in the checkpoint store before its work runs. A
checkpointed phase is never re-executed; its saved output is loaded instead,
so billable calls made by a completed phase are not repeated. A phase that
fails stops the run, so the latest checkpoint always reflects finished work.
"""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from neurobrief.logging_config import get_logger
from neurobrief.resilience import Err, Ok, Result, try_catch, try_catch_async
from neurobrief.storage import CheckpointManager, validate_run_date

from .phases import PIPELINE_PHASES, PipelinePhase

logger = get_logger("sequencer")


@dataclass(frozen=True)
class PhaseContext:
    """What a phase handler sees: the run date and every earlier output."""

    run_date: str
    phase: PipelinePhase
    outputs: Mapping[PipelinePhase, Any]

    @property
    def previous(self) -> Any:
        """Output of the phase immediately before this one, if any."""
        if self.phase.order == 0:
            return None
        return self.outputs.get(PIPELINE_PHASES[self.phase.order - 1])


PhaseHandler = Callable[[PhaseContext], Awaitable[Any]]


@dataclass(frozen=True)
class PhaseFailure:
    phase: PipelinePhase
    error: Exception
    completed: tuple[PipelinePhase, ...] = ()

    def __str__(self) -> str:
        return f"phase {self.phase.value} failed: {self.error}"


@dataclass
class PipelineRun:
    run_date: str
    outputs: dict[PipelinePhase, Any] = field(default_factory=dict)
    executed: list[PipelinePhase] = field(default_factory=list)
    resumed: list[PipelinePhase] = field(default_factory=list)

    @property
    def completed(self) -> tuple[PipelinePhase, ...]:
        return tuple(phase for phase in PIPELINE_PHASES if phase in self.outputs)


class PhaseSequencer:
    """Drives the eight phases in order for a run date."""

    def __init__(
        self,
        checkpoints: CheckpointManager,
        handlers: Mapping[PipelinePhase, PhaseHandler],
    ):
        missing = [phase.value for phase in PIPELINE_PHASES if phase not in handlers]
        if missing:
            raise ValueError(f"No handler for phases: {', '.join(missing)}")
        self.checkpoints = checkpoints
        self.handlers = dict(handlers)

    async def run(
        self,
        run_date: str,
        *,
        rerun_from: PipelinePhase | None = None,
        stop_after: PipelinePhase | None = None,
    ) -> Result[PipelineRun, PhaseFailure]:
        """
        Execute or resume every phase for ``run_date``.

        Args:
            run_date: YYYY-MM-DD
            rerun_from: Discard existing checkpoints at and after this phase
            stop_after: End the run successfully once this phase completes

        Returns:
            Ok(PipelineRun) or Err(PhaseFailure) naming the phase that failed.
        """
        validate_run_date(run_date)
        run = PipelineRun(run_date=run_date)

        if rerun_from is not None:
            # Later checkpoints were built from outputs about to be replaced
            stale = [phase for phase in PIPELINE_PHASES if phase.order >= rerun_from.order]
            discarded = try_catch(
                lambda: [self.checkpoints.discard(run_date, phase) for phase in stale]
            )
            if isinstance(discarded, Err):
                return self._fail(rerun_from, discarded.error, run)
            logger.info(
                f"Discarded checkpoints from {rerun_from.value} onward",
                extra={"context": {"phase": rerun_from.value, "run_date": run_date}},
            )

        for phase in PIPELINE_PHASES:
            context = {"phase": phase.value, "run_date": run_date}

            if self.checkpoints.exists(run_date, phase):
                payload = self.checkpoints.load(run_date, phase)
                if payload is not None:
                    logger.info(
                        f"Resuming {phase.value} from checkpoint", extra={"context": context}
                    )
                    run.outputs[phase] = payload
                    run.resumed.append(phase)
                    if phase == stop_after:
                        break
                    continue
                logger.warning(
                    f"Checkpoint for {phase.value} is unreadable; re-running phase",
                    extra={"context": context},
                )

            logger.info(f"Running phase {phase.value}", extra={"context": context})
            phase_context = PhaseContext(run_date=run_date, phase=phase, outputs=dict(run.outputs))

            handled = await try_catch_async(lambda: self.handlers[phase](phase_context))
            if isinstance(handled, Err):
                return self._fail(phase, handled.error, run)
            output = handled.value

            saved = try_catch(lambda: self.checkpoints.save(run_date, phase, output))
            if isinstance(saved, Err):
                return self._fail(phase, saved.error, run)

            run.outputs[phase] = output
            run.executed.append(phase)
            logger.info(f"Completed phase {phase.value}", extra={"context": context})

            if phase == stop_after:
                break

        return Ok(run)

    def _fail(self, phase: PipelinePhase, error: Exception, run: PipelineRun) -> Err[PhaseFailure]:
        logger.error(
            f"Phase {phase.value} failed: {error}",
            extra={
                "context": {
                    "phase": phase.value,
                    "run_date": run.run_date,
                    "error": type(error).__name__,
                    "code": getattr(error, "code", None),
                }
            },
        )
        return Err(PhaseFailure(phase=phase, error=error, completed=run.completed))
