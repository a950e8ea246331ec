"""Bounded-concurrency batch dispatch with per-record error policies.

A `BatchDispatcher` drives one evaluator over a list of records using a small
pool of asyncio workers that drain a shared index queue. Each worker holds at
most one evaluation at a time, so the pool size is the concurrency bound.
Outcomes are stored in slots keyed by the record's original index, which keeps
the report aligned with the input no matter in which order calls finish.

Failure handling follows the policy's ``on_error`` mode:

- ``fail``: the first failure stops admission of new records. Work already in
  flight finishes and the run ends ``FAILED``.
- ``skip``: the failure is recorded and dispatch continues.
- ``retry``: the record is retried with exponential backoff and jitter. A
  record that still fails is recorded as a `PolicyExhaustionError` and
  dispatch continues.

Cancellation blocks admission and further retries but never interrupts a
provider call that has already started.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
import dataclasses
import logging
from random import random
from typing import TYPE_CHECKING

from meval.core.exceptions import (
    DispatchCancelledError,
    DispatchError,
    MevalError,
    PolicyExhaustionError,
    ProviderError,
)
from meval.core.types import EvaluationOutcome, OnError, RunState

if TYPE_CHECKING:
    from meval.core.types import DispatchPolicy, Record
    from meval.evaluators.base import Evaluator

log = logging.getLogger(__name__)

_JITTER = 0.25


@dataclasses.dataclass(frozen=True, slots=True)
class DispatchReport:
    """Final state of a dispatch run.

    `outcomes` is aligned with the input records. A slot is ``None`` only when
    the record was never admitted because the run failed or was cancelled.
    """

    state: RunState
    outcomes: tuple[EvaluationOutcome | None, ...]
    error: MevalError | None = None

    @property
    def finished(self) -> tuple[EvaluationOutcome, ...]:
        """Outcomes of every record that was evaluated, in input order."""
        return tuple(o for o in self.outcomes if o is not None)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.finished if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.finished if o.failed)

    def raise_for_state(self) -> None:
        """Raise the stored error when the run did not complete."""
        if self.state in (RunState.FAILED, RunState.CANCELLED) and self.error:
            raise self.error


class BatchDispatcher:
    """Dispatch records to an evaluator under a `DispatchPolicy`.

    A dispatcher runs once. Create a new one for every batch.
    """

    def __init__(
        self,
        evaluator: Evaluator,
        policy: DispatchPolicy,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        """Bind the evaluator and policy.

        Args:
            evaluator: Evaluator shared by every worker.
            policy: Concurrency bound and error handling mode.
            cancel_event: Optional externally owned event; setting it has the
                same effect as calling `cancel`.
        """
        self._evaluator = evaluator
        self._policy = policy
        self._cancel_event = cancel_event or asyncio.Event()
        self._state = RunState.PENDING
        self._halted = False
        self._first_failure: DispatchError | None = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Stop admitting records and starting retries."""
        if not self._cancel_event.is_set():
            log.info("Dispatch cancellation requested")
        self._cancel_event.set()

    async def dispatch(
        self, records: Sequence[Record], prompt: str
    ) -> DispatchReport:
        """Evaluate every record and return the aligned report.

        The report is returned for every terminal state; call
        `DispatchReport.raise_for_state` to turn ``FAILED`` and ``CANCELLED``
        into exceptions.
        """
        if self._state is not RunState.PENDING:
            raise RuntimeError(f"dispatcher already used (state={self._state.value})")
        self._state = RunState.DISPATCHING

        total = len(records)
        slots: list[EvaluationOutcome | None] = [None] * total
        queue: asyncio.Queue[int] = asyncio.Queue()
        for index in range(total):
            queue.put_nowait(index)

        workers = min(self._policy.concurrency, total)
        log.info(
            "Dispatching %d records (concurrency=%d, on_error=%s)",
            total,
            workers,
            self._policy.on_error.value,
        )

        async def worker() -> None:
            while not self._admission_closed():
                try:
                    index = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                outcome = await self._run_one(index, records[index], prompt)
                slots[index] = outcome
                if outcome.failed:
                    self._on_failure(outcome)

        await asyncio.gather(*(worker() for _ in range(workers)))
        return self._finish(tuple(slots))

    def _admission_closed(self) -> bool:
        return self._halted or self._cancel_event.is_set()

    def _on_failure(self, outcome: EvaluationOutcome) -> None:
        if self._policy.on_error is OnError.FAIL:
            if self._first_failure is None:
                assert outcome.error is not None
                self._first_failure = DispatchError(outcome.index, outcome.error)
            self._halted = True
        else:
            log.warning("Record %d failed, continuing: %s", outcome.index, outcome.error)

    async def _run_one(
        self, index: int, record: Record, prompt: str
    ) -> EvaluationOutcome:
        outcome = await self._attempt(index, record, prompt)
        attempts = 1
        if self._policy.on_error is not OnError.RETRY:
            return outcome.placed(index, attempts)

        while outcome.failed and attempts <= self._policy.max_retries:
            if self._cancel_event.is_set():
                log.debug("Record %d: retry abandoned after cancellation", index)
                return outcome.placed(index, attempts)
            delay = self._policy.backoff_delay(attempts) * (1 + _JITTER * random())  # noqa: S311
            log.warning(
                "Record %d failed (attempt %d of %d), retrying in %.2fs: %s",
                index,
                attempts,
                self._policy.max_retries + 1,
                delay,
                outcome.error,
            )
            await asyncio.sleep(delay)
            outcome = await self._attempt(index, record, prompt)
            attempts += 1

        if outcome.failed:
            assert outcome.error is not None
            outcome = EvaluationOutcome.failure(
                record, PolicyExhaustionError(attempts, outcome.error)
            )
        return outcome.placed(index, attempts)

    async def _attempt(
        self, index: int, record: Record, prompt: str
    ) -> EvaluationOutcome:
        log.debug("Evaluating record %d", index)
        try:
            return await self._evaluator.evaluate(record, prompt)
        except Exception as e:
            # Anything escaping evaluate() is an adapter bug; record it as a failure.
            error = ProviderError(f"unexpected evaluator error: {e!r}")
            error.__cause__ = e
            return EvaluationOutcome.failure(record, error)

    def _finish(
        self, outcomes: tuple[EvaluationOutcome | None, ...]
    ) -> DispatchReport:
        if self._first_failure is not None:
            self._state = RunState.FAILED
            log.error("Dispatch failed: %s", self._first_failure)
            report = DispatchReport(self._state, outcomes, self._first_failure)
        elif self._cancel_event.is_set():
            self._state = RunState.CANCELLED
            report = DispatchReport(
                self._state, outcomes, DispatchCancelledError(outcomes)
            )
            log.info("Dispatch cancelled: %s", report.error)
        else:
            self._state = RunState.COMPLETED
            report = DispatchReport(self._state, outcomes)
        log.info(
            "Dispatch finished: state=%s succeeded=%d failed=%d",
            self._state.value,
            report.succeeded,
            report.failed,
        )
        return report
