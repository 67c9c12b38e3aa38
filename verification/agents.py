from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Type

from phi.agent import Agent
from phi.model.openai import OpenAIChat
from pydantic import BaseModel


def get_model_config(model_name: str, default_temperature: float = 0) -> Dict[str, Any]:
    """
    Get model configuration with temperature support check.

    Some models (like o1, o1-mini, gpt-5-mini) don't support custom temperature.
    Only set temperature for models that support it.

    Args:
        model_name: Name of the model
        default_temperature: Desired temperature (only used if model supports it)

    Returns:
        Dict with model configuration
    """
    config = {"id": model_name}

    # Models that don't support temperature customization
    models_without_temperature = [
        "o1", "o1-mini", "o1-preview", "o1-2024",
        "gpt-5-mini", "gpt-5",
    ]

    model_lower = model_name.lower()
    supports_temperature = not any(no_temp in model_lower for no_temp in models_without_temperature)

    if supports_temperature:
        config["temperature"] = default_temperature

    # JSON mode support (only for certain models that support it)
    if "gpt-4" in model_lower or ("o1" in model_lower and "gpt-5" not in model_lower):
        config["response_format"] = {"type": "json_object"}

    return config


JSON_CONTRACT_INSTRUCTIONS = [
    "Return ONLY a single JSON object that EXACTLY matches the JSON schema below.",
    "Use the exact key names from the schema. Do not add keys that are not in the schema.",
    "Never infer or invent data: when the source lacks a value use an empty string, an empty array, or null as the schema allows.",
    "No markdown, no code fences, no explanations.",
]

LINKEDIN_PROFILE_INSTRUCTIONS = [
    "Extract LinkedIn profile data strictly from the PDF text.",
    "Experiences are listed in reverse chronological order; keep that order.",
    "Dates use 'YYYY-MM' or 'YYYY'. An ongoing role has endedAt = null.",
]

RESUME_ASSERTIONS_INSTRUCTIONS = [
    "List the factual claims the résumé makes as short, standalone assertions.",
    "Cover employers, titles, dates, degrees, institutions, and certifications.",
]

CROSS_CHECK_INSTRUCTIONS = [
    "You are a résumé verification specialist.",
    "Compare the résumé against the LinkedIn profile and report discrepancies and confirmations as bullet findings.",
    "Focus on employers, titles, employment dates, education, and certifications.",
    "Each finding is one sentence. Do not speculate beyond the two documents.",
]

RESUME_PROJECTS_INSTRUCTIONS = [
    "Extract technical projects from the resume. Capture titles, descriptions, and lists of achievements/skills.",
]

REPO_LIST_INSTRUCTIONS = [
    "Extract repositories strictly belonging to this user from the markdown.",
    "Ignore pinned repos if they belong to others (forks are okay).",
]

PROJECT_MATCH_INSTRUCTIONS = [
    "You are a code auditor. Match Resume Projects to GitHub Repositories.",
    "- Return exactly one mapping per resume project, copying projectTitle verbatim.",
    "- Use fuzzy matching on names/topics.",
    "- If a match is weak, set status to NOT_FOUND.",
    "- Reasoning must be concise.",
]

PROJECT_VERIFICATION_INSTRUCTIONS = [
    "Verify resume claims against code.",
    "- `alignmentScore` (0-100): Does the code prove the project exists and uses the claimed tech?",
    "- `riskFlags`: detect empty repos, forks without changes, or ancient timestamps.",
]


def schema_instructions(schema: Type[BaseModel]) -> List[str]:
    """JSON contract lines plus the schema itself, camelCase keys."""
    schema_json = json.dumps(schema.model_json_schema(by_alias=True), ensure_ascii=False)
    return JSON_CONTRACT_INSTRUCTIONS + ["", "JSON schema:", schema_json]


def build_extraction_agent(
    schema: Type[BaseModel],
    task_instructions: List[str],
    model_name: str,
    temperature: float = 0,
    max_tokens: Optional[int] = None,
    timeout_seconds: Optional[float] = None,
    api_key: Optional[str] = None,
) -> Agent:
    """Build a PhiData agent that answers with one JSON object for ``schema``."""
    model_config = get_model_config(model_name, default_temperature=temperature)
    if max_tokens:
        model_config["max_tokens"] = max_tokens
    if timeout_seconds:
        model_config["timeout"] = timeout_seconds
    # Retries are owned by the extractor so they can be classified and counted
    model_config["max_retries"] = 0

    return Agent(
        name="Structured Extractor",
        role=f"Extract {schema.__name__} as strict JSON",
        model=OpenAIChat(api_key=api_key, **model_config),
        instructions=list(task_instructions) + [""] + schema_instructions(schema),
        show_tool_calls=False,
        markdown=False,
    )
