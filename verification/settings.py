"""
Runtime settings read from the environment.

Secrets (OPENAI_API_KEY, FIRECRAWL_API_KEY) never live in config.py; they
are resolved here once per process and passed explicitly to the clients.
"""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from .config import LLM_CONFIG, SCRAPE_CONFIG
from .models import Settings

# Load environment from the working directory .env and the project root .env if present
load_dotenv()
load_dotenv(dotenv_path=Path(__file__).resolve().parent.parent / ".env", override=False)


def get_settings() -> Settings:
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        firecrawl_api_key=os.getenv("FIRECRAWL_API_KEY"),
        model_name=os.getenv("OPENAI_MODEL", LLM_CONFIG["model"]),
        request_timeout_seconds=float(
            os.getenv("REQUEST_TIMEOUT_SECONDS", str(LLM_CONFIG["timeout_seconds"]))
        ),
        max_retries=int(os.getenv("LLM_MAX_RETRIES", str(LLM_CONFIG["max_retries"]))),
        max_concurrent_verifications=int(
            os.getenv(
                "MAX_CONCURRENT_VERIFICATIONS",
                str(SCRAPE_CONFIG["max_concurrent_verifications"]),
            )
        ),
        verification_reuse_hours=int(os.getenv("VERIFICATION_REUSE_HOURS", "24")),
    )
