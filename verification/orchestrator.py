"""
Pipeline Orchestrator

A pipeline is a fixed list of named stages executed in declared order. Each
stage reads an immutable RunState and returns a dict of updates; the
orchestrator merges updates into a new RunState (accumulator fields append,
everything else overwrites). Every run gets a fresh run id, and cancellation
is checked before each stage.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .errors import RunFatalError, VerificationCancelled, VerificationError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class RunState(BaseModel):
    """Immutable state threaded between stages of one run."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    run_id: str
    values: Dict[str, Any] = Field(default_factory=dict)
    completed_stages: Tuple[str, ...] = ()
    stage_errors: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    timings: Dict[str, float] = Field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.values[key]

    def merge(self, update: Optional[Dict[str, Any]], accumulators: Iterable[str] = ()) -> "RunState":
        accumulators = set(accumulators)
        values = dict(self.values)
        for key, value in (update or {}).items():
            if key in accumulators:
                values[key] = list(values.get(key) or []) + list(value or [])
            else:
                values[key] = value
        return self.model_copy(update={"values": values})

    def metadata(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "completed_stages": list(self.completed_stages),
            "stage_errors": dict(self.stage_errors),
            "timings": dict(self.timings),
        }


StageFn = Callable[[RunState], Awaitable[Optional[Dict[str, Any]]]]


@dataclass(frozen=True)
class Stage:
    name: str
    fn: StageFn
    after: Tuple[str, ...] = ()
    optional: bool = False


class Pipeline:
    """A strict DAG of stages: no cycles, no re-entry, declared dependency order."""

    def __init__(self, name: str, stages: Sequence[Stage], accumulators: Iterable[str] = ()):
        seen: List[str] = []
        for stage in stages:
            if stage.name in seen:
                raise ValueError(f"Duplicate stage name: {stage.name}")
            missing = [dep for dep in stage.after if dep not in seen]
            if missing:
                raise ValueError(f"Stage '{stage.name}' depends on undeclared or later stages: {missing}")
            seen.append(stage.name)
        self.name = name
        self.stages = tuple(stages)
        self.accumulators = tuple(accumulators)

    @property
    def stage_names(self) -> List[str]:
        return [stage.name for stage in self.stages]

    async def run(
        self,
        initial: Optional[Dict[str, Any]] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        run_id: Optional[str] = None,
    ) -> RunState:
        state = RunState(run_id=run_id or uuid.uuid4().hex, values=dict(initial or {}))
        logger.info(f"[{self.name}] run {state.run_id} started ({len(self.stages)} stages)")

        for stage in self.stages:
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(f"[{self.name}] run {state.run_id} cancelled before stage '{stage.name}'")
                raise VerificationCancelled("Verification run was cancelled", stage=stage.name)

            logger.info(f"[{self.name}] stage '{stage.name}' started")
            started = time.perf_counter()
            try:
                update = await stage.fn(state)
            except VerificationCancelled as exc:
                raise exc.with_stage(stage.name)
            except VerificationError as exc:
                exc.with_stage(stage.name)
                if not stage.optional:
                    logger.error(f"[{self.name}] stage '{stage.name}' failed: {exc.message}", exc_info=True)
                    raise
                logger.warning(f"[{self.name}] optional stage '{stage.name}' failed: {exc.message}")
                state = self._record_failure(state, stage, exc.to_dict(), started)
                continue
            except Exception as exc:
                if not stage.optional:
                    logger.error(f"[{self.name}] stage '{stage.name}' failed: {exc}", exc_info=True)
                    raise RunFatalError(str(exc) or type(exc).__name__, stage=stage.name, cause=exc) from exc
                logger.warning(f"[{self.name}] optional stage '{stage.name}' failed: {exc}")
                payload = RunFatalError(str(exc) or type(exc).__name__, stage=stage.name).to_dict()
                state = self._record_failure(state, stage, payload, started)
                continue

            elapsed = round(time.perf_counter() - started, 4)
            state = state.merge(update, self.accumulators).model_copy(
                update={
                    "completed_stages": state.completed_stages + (stage.name,),
                    "timings": {**state.timings, stage.name: elapsed},
                }
            )
            logger.info(f"[{self.name}] stage '{stage.name}' finished in {elapsed:.2f}s ✓")

        logger.info(f"[{self.name}] run {state.run_id} completed")
        return state

    @staticmethod
    def _record_failure(state: RunState, stage: Stage, payload: Dict[str, Any], started: float) -> RunState:
        return state.model_copy(
            update={
                "stage_errors": {**state.stage_errors, stage.name: payload},
                "timings": {**state.timings, stage.name: round(time.perf_counter() - started, 4)},
            }
        )


async def run_cancellable(
    awaitable: Awaitable[T],
    cancel_event: Optional[asyncio.Event] = None,
    timeout: Optional[float] = None,
) -> T:
    """
    Await ``awaitable`` bounded by ``timeout`` seconds and abandon it as soon as
    ``cancel_event`` is set. Raises asyncio.TimeoutError or VerificationCancelled.
    """
    task = asyncio.ensure_future(awaitable)
    if cancel_event is None:
        return await asyncio.wait_for(task, timeout)

    if cancel_event.is_set():
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise VerificationCancelled("Verification run was cancelled")

    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    if cancel_event.is_set():
        raise VerificationCancelled("Verification run was cancelled")
    raise asyncio.TimeoutError(f"Operation timed out after {timeout}s")


async def sleep_cancellable(
    delay: float,
    cancel_event: Optional[asyncio.Event] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> None:
    await run_cancellable(sleep(delay), cancel_event)


async def fan_out(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    limit: Optional[int] = None,
) -> List[R]:
    """
    Run ``worker`` over ``items`` concurrently and return results in input order.

    Workers are expected to capture their own per-item failures; anything they
    raise (cancellation included) cancels the siblings and propagates.
    """
    semaphore = asyncio.Semaphore(limit) if limit and limit > 0 else None

    async def run_one(item: T) -> R:
        if semaphore is None:
            return await worker(item)
        async with semaphore:
            return await worker(item)

    tasks = [asyncio.ensure_future(run_one(item)) for item in items]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
