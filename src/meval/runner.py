"""Run an experiment end to end: read, evaluate, write.

The runner is the only component that knows about every other one. It reads
all inputs, builds the evaluator, hands the records to a `BatchDispatcher` and,
when the run completes, projects the successful outcomes onto each output
schema and writes them. Failed and cancelled runs write nothing.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import dataclasses
import logging
from typing import TYPE_CHECKING, Any, TypeAlias

from meval.config.settings import HarnessSettings
from meval.core.exceptions import DispatchCancelledError, ReadCancelledError
from meval.dispatch import BatchDispatcher
from meval.evaluators.factory import create_evaluator
from meval.projection import apply_input_mappings, project_outcome
from meval.sources.factory import create_source

if TYPE_CHECKING:
    from meval.config.models import MevalConfig
    from meval.core.types import EvaluationOutcome, Record
    from meval.evaluators.base import Evaluator

log = logging.getLogger(__name__)

EvaluatorFactory: TypeAlias = "Callable[..., Evaluator]"


@dataclasses.dataclass(frozen=True, slots=True)
class RunSummary:
    """Counts describing a completed run."""

    experiment: str
    total: int
    succeeded: int
    failed: int
    outputs_written: int
    records_written: int


class EvaluationRunner:
    """Executes experiment documents.

    `stop` may be called from any coroutine on the same loop while `execute`
    is running. It stops reading between files and stops dispatch admission;
    a stopped runner stays stopped.
    """

    def __init__(
        self,
        settings: HarnessSettings | None = None,
        *,
        api_key: str | None = None,
        evaluator_factory: EvaluatorFactory = create_evaluator,
        **evaluator_options: Any,
    ) -> None:
        """Configure the runner.

        Args:
            settings: Harness settings; resolved from the environment if omitted.
            api_key: Explicit provider credential, bypassing the environment.
            evaluator_factory: Replacement for `create_evaluator`.
            **evaluator_options: Extra keyword arguments for the factory, such
                as an httpx ``transport``.
        """
        self.settings = settings or HarnessSettings()
        self._api_key = api_key
        self._evaluator_factory = evaluator_factory
        self._evaluator_options = evaluator_options
        self._stop = asyncio.Event()

    def stop(self) -> None:
        """Request cancellation of the current (or next) run."""
        log.info("Stop requested")
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    async def execute(self, config: MevalConfig) -> RunSummary:
        """Run one experiment.

        Raises:
            DispatchError: The fail policy stopped the run on a record failure.
            DispatchCancelledError: `stop` was called before the run finished.
            MevalError: Any configuration, source or validation failure.
        """
        name = config.experiment.name
        log.info("Starting experiment %s v%s", name, config.experiment.version)

        records = self._read_inputs(config)
        evaluation = config.evaluation
        prompts = [apply_input_mappings(r, evaluation.mappings.input) for r in records]

        evaluator = self._evaluator_factory(
            evaluation.provider,
            evaluation,
            api_key=self._api_key,
            settings=self.settings,
            **self._evaluator_options,
        )
        dispatcher = BatchDispatcher(
            evaluator,
            config.controls.to_policy(self.settings),
            cancel_event=self._stop,
        )
        async with evaluator:
            report = await dispatcher.dispatch(prompts, evaluation.prompt)
        report.raise_for_state()

        finished = report.finished
        for outcome in finished:
            if outcome.failed:
                log.warning(
                    "Record %d excluded from output: %s", outcome.index, outcome.error
                )
        successes = [o for o in finished if o.ok]
        written = self._write_outputs(config, successes)

        summary = RunSummary(
            experiment=name,
            total=len(records),
            succeeded=report.succeeded,
            failed=report.failed,
            outputs_written=len(config.outputs),
            records_written=written,
        )
        log.info(
            "Experiment %s finished: %d of %d records succeeded",
            name,
            summary.succeeded,
            summary.total,
        )
        return summary

    def _read_inputs(self, config: MevalConfig) -> list[Record]:
        records: list[Record] = []
        for declaration in config.inputs:
            source = create_source(
                declaration.config,
                declaration.format,
                declaration.schema_.to_schema(),
            )
            with source:
                try:
                    batch = source.read(should_stop=self._stop.is_set)
                except ReadCancelledError as e:
                    raise DispatchCancelledError() from e
            log.info("Input %s: %d records", declaration.id, len(batch))
            records.extend(batch)
        return records

    def _write_outputs(
        self, config: MevalConfig, outcomes: list[EvaluationOutcome]
    ) -> int:
        mappings = config.evaluation.mappings.output
        for declaration in config.outputs:
            schema = declaration.schema_.to_schema()
            rows = [project_outcome(o, schema, mappings) for o in outcomes]
            with create_source(declaration.config, declaration.format, schema) as sink:
                sink.write(rows)
            log.info("Output %s: wrote %d records", declaration.id, len(rows))
        return len(outcomes)
