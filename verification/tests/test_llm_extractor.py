"""
Unit tests for the structured extraction client (retry, backoff, schema checks).
"""

import asyncio
import json
import logging
import unittest

from verification.errors import (
    ConfigurationError,
    ProviderRequestError,
    SchemaValidationError,
    TransientProviderError,
    VerificationCancelled,
)
from verification.llm_extractor import StructuredExtractor, extract_json_from_response
from verification.models import LLMOptions, Settings
from verification.schemas import ProjectVerificationReport, RepoList, ResumeAssertions
from verification.tests.fakes import AgentFactory, FakeAgent

# Configure logging for tests
logging.basicConfig(level=logging.INFO)

RATE_LIMITED = "Error code: 429 - Rate limit reached for gpt-4.1-mini"
VALID_ASSERTIONS = json.dumps({"assertions": ["Software Engineer at Acme Corp 2020-2021"]})


def make_extractor(outcomes, **kwargs):
    agent = FakeAgent(outcomes)
    factory = AgentFactory(agent)
    sleeps = []

    async def fake_sleep(delay):
        sleeps.append(delay)

    extractor = StructuredExtractor(
        settings=Settings(openai_api_key="test-key"),
        agent_factory=factory,
        sleep=fake_sleep,
        rng=lambda: 1.0,
        **kwargs,
    )
    return extractor, agent, factory, sleeps


class TestRetryPolicy(unittest.IsolatedAsyncioTestCase):
    """Transient errors are retried with backoff; everything else fails fast."""

    async def test_rate_limit_then_success(self):
        """Two rate limits followed by a valid answer: exactly two retries."""
        extractor, agent, _, sleeps = make_extractor(
            [Exception(RATE_LIMITED), Exception(RATE_LIMITED), VALID_ASSERTIONS]
        )
        result = await extractor.extract(ResumeAssertions, "Resume text")
        self.assertEqual(result.assertions, ["Software Engineer at Acme Corp 2020-2021"])
        self.assertEqual(agent.calls, 3)
        self.assertEqual(sleeps, [0.5, 1.0])

    async def test_retries_exhausted(self):
        extractor, agent, _, sleeps = make_extractor([Exception(RATE_LIMITED)] * 4)
        with self.assertRaises(TransientProviderError) as ctx:
            await extractor.extract(ResumeAssertions, "Resume text", options=LLMOptions(retries=3))
        self.assertEqual(agent.calls, 4)
        self.assertEqual(len(sleeps), 3)
        self.assertTrue(all(delay <= 5.0 for delay in sleeps))
        self.assertTrue(ctx.exception.retryable)
        self.assertIn("4 attempts", ctx.exception.message)

    async def test_client_error_not_retried(self):
        extractor, agent, _, sleeps = make_extractor(
            [Exception("Error code: 400 - invalid_request_error"), VALID_ASSERTIONS]
        )
        with self.assertRaises(ProviderRequestError):
            await extractor.extract(ResumeAssertions, "Resume text")
        self.assertEqual(agent.calls, 1)
        self.assertEqual(sleeps, [])

    async def test_schema_violation_not_retried(self):
        """A well-formed JSON answer with an unknown key is a schema error, not a transient one."""
        extractor, agent, _, sleeps = make_extractor(
            [json.dumps({"assertions": [], "confidence": 0.9}), VALID_ASSERTIONS]
        )
        with self.assertRaises(SchemaValidationError):
            await extractor.extract(ResumeAssertions, "Resume text")
        self.assertEqual(agent.calls, 1)
        self.assertEqual(sleeps, [])

    async def test_wrong_type_is_schema_error(self):
        extractor, agent, _, _ = make_extractor([json.dumps({"alignmentScore": "very high"})])
        with self.assertRaises(SchemaValidationError):
            await extractor.extract(ProjectVerificationReport, "Repo text")
        self.assertEqual(agent.calls, 1)

    async def test_fractional_numbers_accepted(self):
        extractor, _, _, _ = make_extractor([
            json.dumps({"alignmentScore": 72.5}),
            json.dumps({"repos": [{"name": "a", "stars": 1.2}]}),
        ])
        report = await extractor.extract(ProjectVerificationReport, "Repo text")
        self.assertEqual(report.alignment_score, 72.5)
        repos = await extractor.extract(RepoList, "Profile text")
        self.assertEqual(repos.repos[0].stars, 1.2)

    async def test_non_json_answer(self):
        extractor, agent, _, _ = make_extractor(["I could not find any assertions, sorry."])
        with self.assertRaises(SchemaValidationError):
            await extractor.extract(ResumeAssertions, "Resume text")
        self.assertEqual(agent.calls, 1)

    async def test_timeout_is_transient(self):
        extractor, agent, _, _ = make_extractor(["SLOW"])
        with self.assertRaises(TransientProviderError):
            await extractor.extract(
                ResumeAssertions, "Resume text", options=LLMOptions(timeout_seconds=0.01, retries=0)
            )
        self.assertEqual(agent.calls, 1)


class TestCancellation(unittest.IsolatedAsyncioTestCase):

    async def test_cancel_before_call(self):
        extractor, agent, _, _ = make_extractor([VALID_ASSERTIONS])
        cancel_event = asyncio.Event()
        cancel_event.set()
        with self.assertRaises(VerificationCancelled):
            await extractor.extract(ResumeAssertions, "Resume text", cancel_event=cancel_event)
        self.assertEqual(agent.calls, 0)

    async def test_cancel_during_call(self):
        extractor, agent, _, _ = make_extractor(["SLOW"])
        cancel_event = asyncio.Event()
        asyncio.get_running_loop().call_later(0.01, cancel_event.set)
        with self.assertRaises(VerificationCancelled):
            await extractor.extract(ResumeAssertions, "Resume text", cancel_event=cancel_event)
        self.assertEqual(agent.calls, 1)


class TestBackoffAndOptions(unittest.TestCase):

    def setUp(self):
        self.extractor, _, self.factory, _ = make_extractor([])

    def test_backoff_doubles_and_caps(self):
        delays = [self.extractor.backoff_delay(n) for n in range(1, 6)]
        self.assertEqual(delays, [0.5, 1.0, 2.0, 4.0, 5.0])

    def test_backoff_jitter_lower_bound(self):
        extractor = StructuredExtractor(settings=Settings(openai_api_key="k"), rng=lambda: 0.0)
        self.assertEqual(extractor.backoff_delay(3), 1.0)

    def test_option_precedence(self):
        extractor = StructuredExtractor(
            settings=Settings(openai_api_key="env-key", model_name="gpt-4.1-mini", max_retries=3),
            options=LLMOptions(model="gpt-4o", retries=1),
        )
        resolved = extractor.resolve_options(LLMOptions(retries=5, temperature=0.2))
        self.assertEqual(resolved["model_name"], "gpt-4o")
        self.assertEqual(resolved["retries"], 5)
        self.assertEqual(resolved["temperature"], 0.2)
        self.assertEqual(resolved["api_key"], "env-key")

    def test_missing_api_key(self):
        with self.assertRaises(ConfigurationError):
            StructuredExtractor(settings=Settings())

    def test_explicit_api_key_wins(self):
        extractor = StructuredExtractor(api_key="explicit", settings=Settings(openai_api_key="env-key"))
        self.assertEqual(extractor.api_key, "explicit")


class TestMessagesAndParsing(unittest.IsolatedAsyncioTestCase):

    async def test_system_messages_become_instructions(self):
        extractor, agent, factory, _ = make_extractor([VALID_ASSERTIONS])
        await extractor.extract(
            ResumeAssertions,
            [
                {"role": "system", "content": "List résumé claims."},
                {"role": "user", "content": "RESUME: Jane Doe"},
            ],
        )
        self.assertEqual(factory.builds[0]["instructions"], ["List résumé claims."])
        self.assertEqual(factory.builds[0]["schema"], ResumeAssertions)
        self.assertEqual(agent.prompts, ["RESUME: Jane Doe"])

    async def test_fenced_json_is_accepted(self):
        extractor, _, _, _ = make_extractor([f"```json\n{VALID_ASSERTIONS}\n```"])
        result = await extractor.extract(ResumeAssertions, "Resume text")
        self.assertEqual(len(result.assertions), 1)

    def test_extract_json_from_response(self):
        self.assertEqual(extract_json_from_response('Sure! {"a": 1} Hope that helps.'), {"a": 1})
        self.assertIsNone(extract_json_from_response("[1, 2, 3]"))
        self.assertIsNone(extract_json_from_response(""))
        self.assertIsNone(extract_json_from_response("{not json}"))


if __name__ == "__main__":
    unittest.main()
