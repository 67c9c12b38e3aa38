"""
Unit tests for the pipeline orchestrator.
"""

import asyncio
import logging
import unittest

from verification.errors import RunFatalError, SchemaValidationError, VerificationCancelled
from verification.orchestrator import Pipeline, RunState, Stage, fan_out, run_cancellable

# Configure logging for tests
logging.basicConfig(level=logging.INFO)


def recorder(name, log, update=None):
    async def stage(state):
        log.append(name)
        return update
    return stage


def failing(exc):
    async def stage(state):
        raise exc
    return stage


class TestPipelineExecution(unittest.IsolatedAsyncioTestCase):

    async def test_stages_run_in_declared_order(self):
        log = []
        pipeline = Pipeline("demo", [
            Stage("a", recorder("a", log, {"x": 1})),
            Stage("b", recorder("b", log, {"x": 2}), after=("a",)),
            Stage("c", recorder("c", log), after=("a", "b")),
        ])
        state = await pipeline.run({"seed": True})
        self.assertEqual(log, ["a", "b", "c"])
        self.assertEqual(state["x"], 2)
        self.assertTrue(state["seed"])
        self.assertEqual(state.completed_stages, ("a", "b", "c"))
        self.assertEqual(set(state.timings), {"a", "b", "c"})

    async def test_accumulators_append(self):
        pipeline = Pipeline(
            "demo",
            [
                Stage("first", recorder("first", [], {"notes": ["one"]})),
                Stage("second", recorder("second", [], {"notes": ["two", "three"]})),
            ],
            accumulators=("notes",),
        )
        state = await pipeline.run()
        self.assertEqual(state["notes"], ["one", "two", "three"])

    async def test_stage_sees_previous_state(self):
        async def read_x(state):
            return {"y": state["x"] + 1}

        pipeline = Pipeline("demo", [Stage("a", recorder("a", [], {"x": 41})), Stage("b", read_x, after=("a",))])
        state = await pipeline.run()
        self.assertEqual(state["y"], 42)

    async def test_run_ids_are_unique(self):
        pipeline = Pipeline("demo", [Stage("a", recorder("a", []))])
        first = await pipeline.run()
        second = await pipeline.run()
        self.assertNotEqual(first.run_id, second.run_id)
        explicit = await pipeline.run(run_id="fixed")
        self.assertEqual(explicit.run_id, "fixed")

    def test_state_is_immutable(self):
        state = RunState(run_id="r1", values={"x": 1})
        merged = state.merge({"x": 2})
        self.assertEqual(state["x"], 1)
        self.assertEqual(merged["x"], 2)
        with self.assertRaises(Exception):
            state.run_id = "r2"


class TestPipelineValidation(unittest.TestCase):

    def test_duplicate_stage_names(self):
        with self.assertRaises(ValueError):
            Pipeline("demo", [Stage("a", recorder("a", [])), Stage("a", recorder("a", []))])

    def test_dependency_must_come_first(self):
        with self.assertRaises(ValueError):
            Pipeline("demo", [Stage("a", recorder("a", []), after=("b",)), Stage("b", recorder("b", []))])

    def test_stage_names(self):
        pipeline = Pipeline("demo", [Stage("a", recorder("a", [])), Stage("b", recorder("b", []))])
        self.assertEqual(pipeline.stage_names, ["a", "b"])


class TestPipelineFailures(unittest.IsolatedAsyncioTestCase):

    async def test_optional_stage_failure_is_recorded(self):
        log = []
        pipeline = Pipeline("demo", [
            Stage("a", recorder("a", log, {"x": 1})),
            Stage("narrative", failing(SchemaValidationError("bad answer")), optional=True),
            Stage("c", recorder("c", log)),
        ])
        state = await pipeline.run()
        self.assertEqual(log, ["a", "c"])
        self.assertEqual(state.stage_errors["narrative"]["kind"], "schema")
        self.assertEqual(state.stage_errors["narrative"]["stage"], "narrative")
        self.assertNotIn("narrative", state.completed_stages)

    async def test_optional_stage_generic_exception(self):
        pipeline = Pipeline("demo", [Stage("narrative", failing(KeyError("x")), optional=True)])
        state = await pipeline.run()
        self.assertEqual(state.stage_errors["narrative"]["kind"], "run_fatal")

    async def test_generic_exception_becomes_run_fatal(self):
        log = []
        pipeline = Pipeline("demo", [
            Stage("a", failing(ValueError("boom"))),
            Stage("b", recorder("b", log)),
        ])
        with self.assertRaises(RunFatalError) as ctx:
            await pipeline.run()
        self.assertEqual(ctx.exception.stage, "a")
        self.assertIsInstance(ctx.exception.cause, ValueError)
        self.assertEqual(log, [])

    async def test_taxonomy_errors_propagate_with_stage(self):
        pipeline = Pipeline("demo", [Stage("extract", failing(SchemaValidationError("bad answer")))])
        with self.assertRaises(SchemaValidationError) as ctx:
            await pipeline.run()
        self.assertEqual(ctx.exception.stage, "extract")

    async def test_cancelled_before_first_stage(self):
        log = []
        cancel_event = asyncio.Event()
        cancel_event.set()
        pipeline = Pipeline("demo", [Stage("a", recorder("a", log))])
        with self.assertRaises(VerificationCancelled) as ctx:
            await pipeline.run(cancel_event=cancel_event)
        self.assertEqual(ctx.exception.stage, "a")
        self.assertEqual(log, [])

    async def test_cancelled_mid_run(self):
        log = []
        cancel_event = asyncio.Event()

        async def cancel_after(state):
            log.append("a")
            cancel_event.set()

        pipeline = Pipeline("demo", [Stage("a", cancel_after), Stage("b", recorder("b", log))])
        with self.assertRaises(VerificationCancelled) as ctx:
            await pipeline.run(cancel_event=cancel_event)
        self.assertEqual(ctx.exception.stage, "b")
        self.assertEqual(log, ["a"])

    async def test_cancellation_in_optional_stage_still_aborts(self):
        pipeline = Pipeline("demo", [Stage("narrative", failing(VerificationCancelled("stop")), optional=True)])
        with self.assertRaises(VerificationCancelled):
            await pipeline.run()


class TestConcurrencyHelpers(unittest.IsolatedAsyncioTestCase):

    async def test_fan_out_preserves_order(self):
        async def worker(n):
            await asyncio.sleep(0.001 * (5 - n))
            return n * 10

        self.assertEqual(await fan_out([1, 2, 3, 4], worker), [10, 20, 30, 40])

    async def test_fan_out_respects_limit(self):
        active, peak = 0, 0

        async def worker(n):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.001)
            active -= 1
            return n

        results = await fan_out(list(range(10)), worker, limit=3)
        self.assertEqual(results, list(range(10)))
        self.assertLessEqual(peak, 3)

    async def test_fan_out_empty(self):
        async def worker(n):
            return n

        self.assertEqual(await fan_out([], worker), [])

    async def test_fan_out_propagates_and_cancels_siblings(self):
        finished = []

        async def worker(n):
            if n == 0:
                raise VerificationCancelled("stop")
            await asyncio.sleep(1)
            finished.append(n)

        with self.assertRaises(VerificationCancelled):
            await fan_out([0, 1, 2], worker)
        self.assertEqual(finished, [])

    async def test_run_cancellable_timeout(self):
        with self.assertRaises(asyncio.TimeoutError):
            await run_cancellable(asyncio.sleep(1), asyncio.Event(), timeout=0.01)

    async def test_run_cancellable_cancel(self):
        cancel_event = asyncio.Event()
        asyncio.get_running_loop().call_later(0.01, cancel_event.set)
        with self.assertRaises(VerificationCancelled):
            await run_cancellable(asyncio.sleep(1), cancel_event)

    async def test_run_cancellable_result(self):
        async def answer():
            return 42

        self.assertEqual(await run_cancellable(answer(), asyncio.Event(), timeout=1), 42)


if __name__ == "__main__":
    unittest.main()
