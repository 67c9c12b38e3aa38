"""
Entry points for the calling layer.

Synchronous wrappers around both pipelines, plus the two policies the
persistence layer applies around them: which GitHub URL to verify, and
whether a recent completed verification can be reused.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from .errors import InvalidProfileUrlError
from .github_pipeline import run_github_verification
from .linkedin_pipeline import run_linkedin_verification
from .models import GithubVerificationResult, VerificationResult
from .normalization import normalize_github_profile_url, resolve_github_profile_url
from .settings import get_settings

logger = logging.getLogger(__name__)

__all__ = [
    "verify_linkedin_profile",
    "verify_github_profile",
    "resolve_github_profile_url",
    "is_reusable_verification",
]

COMPLETED_STATUS = "COMPLETED"


def verify_linkedin_profile(resume: Any, linkedin_text: str, **kwargs: Any) -> VerificationResult:
    """Blocking wrapper around run_linkedin_verification (do not call from a running event loop)."""
    return asyncio.run(run_linkedin_verification(resume, linkedin_text, **kwargs))


def verify_github_profile(resume: Any, github_profile_url: str, **kwargs: Any) -> GithubVerificationResult:
    """Blocking wrapper around run_github_verification (do not call from a running event loop)."""
    return asyncio.run(run_github_verification(resume, github_profile_url, **kwargs))


def _field(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def _as_utc(value: Any) -> Optional[datetime]:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _canonical_profile_url(url: Any) -> str:
    try:
        return normalize_github_profile_url(url).profile_url.lower()
    except InvalidProfileUrlError:
        return str(url or "").strip().lower()


def is_reusable_verification(
    record: Optional[Mapping[str, Any]],
    resume_id: str,
    profile_url: str,
    now: Optional[datetime] = None,
    max_age: Optional[timedelta] = None,
) -> bool:
    """
    True when ``record`` is a COMPLETED verification of the same résumé and
    profile URL finished within ``max_age`` (VERIFICATION_REUSE_HOURS, 24h by default).
    """
    if not record:
        return False
    if str(_field(record, "status") or "").upper() != COMPLETED_STATUS:
        return False
    if str(_field(record, "resumeId", "resume_id") or "") != str(resume_id):
        return False

    recorded_url = _field(record, "githubProfileUrl", "github_profile_url", "profileUrl", "profile_url")
    if _canonical_profile_url(recorded_url) != _canonical_profile_url(profile_url):
        return False

    finished = _as_utc(_field(record, "completedAt", "completed_at", "updatedAt", "updated_at", "createdAt", "created_at"))
    if finished is None:
        return False

    now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    max_age = max_age if max_age is not None else timedelta(hours=get_settings().verification_reuse_hours)
    reusable = timedelta(0) <= now - finished <= max_age
    if reusable:
        logger.info(f"Reusing verification of résumé {resume_id} completed at {finished.isoformat()}")
    return reusable
