"""
Structured Extraction Client

Uses PhiData + OpenAI chat models to turn unstructured text into a value that
conforms exactly to a pydantic schema. Transient provider failures are retried
with exponential backoff and jitter; schema violations and client errors abort
on the first attempt.
"""

import asyncio
import json
import logging
import random
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from .agents import build_extraction_agent
from .config import LLM_CONFIG, RETRY_CONFIG
from .errors import (
    ConfigurationError,
    SchemaValidationError,
    TransientProviderError,
    VerificationCancelled,
    classify_provider_error,
)
from .models import LLMOptions, Settings
from .orchestrator import run_cancellable, sleep_cancellable
from .settings import get_settings

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)
Messages = Union[str, Sequence[Dict[str, str]]]

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)


def extract_json_from_response(text: str) -> Optional[Dict[str, Any]]:
    """Extract a JSON object from an LLM response, handling markdown fences and stray prose."""
    if not text:
        return None

    # Remove markdown code fences
    match = _FENCE_RE.search(text)
    if match:
        text = match.group(1).strip()

    # Try direct parse
    try:
        parsed = json.loads(text)
        return parsed if isinstance(parsed, dict) else None
    except json.JSONDecodeError:
        pass

    # Fall back to the outermost braces
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        parsed = json.loads(text[start:end + 1])
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _response_text(response: Any) -> Any:
    if hasattr(response, "content"):
        return response.content
    if hasattr(response, "messages") and response.messages:
        last_msg = response.messages[-1]
        return last_msg.content if hasattr(last_msg, "content") else last_msg
    return response


class StructuredExtractor:
    """
    One extraction client per process or per pipeline run; pass it explicitly
    to the pipelines rather than reading a module-level singleton.

    Args:
        api_key: OpenAI key; falls back to options.api_key, then the environment
        options: Default runtime options for every call
        settings: Environment settings (read via get_settings() when omitted)
        agent_factory: Builds the PhiData agent; injectable for tests
        sleep: Backoff sleep coroutine; injectable for tests
        rng: Jitter source returning floats in [0, 1)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        options: Optional[LLMOptions] = None,
        settings: Optional[Settings] = None,
        agent_factory: Optional[Callable[..., Any]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ):
        self.settings = settings or get_settings()
        self.options = options or LLMOptions()
        self.api_key = api_key or self.options.api_key or self.settings.openai_api_key
        if not self.api_key:
            raise ConfigurationError("OPENAI_API_KEY is not configured")
        self._agent_factory = agent_factory or build_extraction_agent
        self._sleep = sleep
        self._rng = rng

    def resolve_options(self, options: Optional[LLMOptions] = None) -> Dict[str, Any]:
        """Per-call options override instance options, which override settings and LLM_CONFIG."""
        layers = [o for o in (options, self.options) if o is not None]

        def pick(field: str, fallback: Any) -> Any:
            for layer in layers:
                value = getattr(layer, field)
                if value is not None:
                    return value
            return fallback

        return {
            "model_name": pick("model", self.settings.model_name or LLM_CONFIG["model"]),
            "temperature": pick("temperature", LLM_CONFIG["temperature"]),
            "max_tokens": pick("max_tokens", LLM_CONFIG["max_tokens"]),
            "timeout_seconds": pick("timeout_seconds", self.settings.request_timeout_seconds),
            "retries": pick("retries", self.settings.max_retries),
            "api_key": pick("api_key", self.api_key),
        }

    def backoff_delay(self, retry_number: int) -> float:
        """Delay before retry ``retry_number`` (1-based), capped and jittered."""
        delay = min(
            RETRY_CONFIG["max_delay_seconds"],
            RETRY_CONFIG["base_delay_seconds"] * RETRY_CONFIG["factor"] ** (retry_number - 1),
        )
        if RETRY_CONFIG["randomize"]:
            delay = delay / 2 + self._rng() * delay / 2
        return delay

    async def extract(
        self,
        schema: Type[SchemaT],
        messages: Messages,
        *,
        options: Optional[LLMOptions] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SchemaT:
        """
        Run one structured extraction.

        Args:
            schema: Closed pydantic model the answer must conform to
            messages: A user prompt, or a list of {"role", "content"} turns
            options: Per-call overrides (model, temperature, timeout, retries)
            cancel_event: Set it to abandon the call and any pending backoff

        Returns:
            An instance of ``schema``

        Raises:
            TransientProviderError: retries exhausted
            ProviderRequestError: terminal provider error
            SchemaValidationError: output did not fit the schema
            VerificationCancelled: cancel_event was set
        """
        resolved = self.resolve_options(options)
        system_parts, prompt = self._split_messages(messages)
        agent = self._agent_factory(
            schema,
            system_parts,
            model_name=resolved["model_name"],
            temperature=resolved["temperature"],
            max_tokens=resolved["max_tokens"],
            timeout_seconds=resolved["timeout_seconds"],
            api_key=resolved["api_key"],
        )

        attempts = int(resolved["retries"]) + 1
        schema_name = schema.__name__
        for attempt in range(1, attempts + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise VerificationCancelled(f"{schema_name} extraction cancelled")
            try:
                logger.info(f"{schema_name} extraction attempt {attempt}/{attempts}")
                response = await run_cancellable(agent.arun(prompt), cancel_event, resolved["timeout_seconds"])
            except VerificationCancelled:
                raise
            except Exception as exc:
                error = classify_provider_error(exc)
                if not error.retryable:
                    logger.error(f"{schema_name} extraction failed with terminal error: {error.message}")
                    if error is exc:
                        raise
                    raise error from exc
                if attempt == attempts:
                    logger.error(f"{schema_name} extraction failed after {attempts} attempts: {error.message}")
                    raise TransientProviderError(
                        f"{schema_name} extraction failed after {attempts} attempts: {error.message}",
                        cause=exc,
                    ) from exc
                delay = self.backoff_delay(attempt)
                logger.warning(
                    f"{schema_name} extraction attempt {attempt} failed ({error.message}); "
                    f"retrying in {delay:.2f}s"
                )
                await sleep_cancellable(delay, cancel_event, self._sleep)
                continue

            result = self.parse_response(schema, response)
            logger.info(f"Successfully extracted {schema_name}")
            return result

        raise TransientProviderError(f"{schema_name} extraction failed")

    @staticmethod
    def parse_response(schema: Type[SchemaT], response: Any) -> SchemaT:
        content = _response_text(response)
        if isinstance(content, BaseModel):
            data = content.model_dump(by_alias=True)
        elif isinstance(content, dict):
            data = content
        else:
            text = "" if content is None else str(content)
            logger.debug(f"Raw LLM response ({len(text)} chars): {text[:200]}")
            data = extract_json_from_response(text)
            if data is None:
                raise SchemaValidationError(f"Could not extract valid JSON for {schema.__name__}")

        try:
            return schema.model_validate(data)
        except ValidationError as exc:
            raise SchemaValidationError(
                f"{schema.__name__} validation failed with {exc.error_count()} error(s): {exc.errors()[0]['msg']}",
                cause=exc,
            ) from exc

    @staticmethod
    def _split_messages(messages: Messages) -> Tuple[List[str], str]:
        if isinstance(messages, str):
            return [], messages
        system_parts: List[str] = []
        user_parts: List[str] = []
        for message in messages:
            role = message.get("role", "user")
            content = message.get("content") or ""
            (system_parts if role == "system" else user_parts).append(content)
        return system_parts, "\n\n".join(user_parts)
