"""
Résumé Verification Core

Cross-verifies a résumé against a LinkedIn PDF export and a GitHub profile:
1. LLM structured extraction (PhiData + OpenAI) of the external profile
2. Deterministic best-match scoring against the résumé
3. Per-project repository verification for GitHub (Firecrawl + LLM)

Usage:
    from verification import run_linkedin_verification

    result = await run_linkedin_verification(resume_doc, linkedin_pdf_text)
    print(f"Score: {result.overall_score}/100")
"""

from .config import SECTION_WEIGHTS
from .errors import ErrorKind, VerificationError
from .github_pipeline import run_github_verification
from .linkedin_pipeline import run_linkedin_verification
from .llm_extractor import StructuredExtractor
from .models import (
    GithubVerificationResult,
    LinkedInProfile,
    LLMOptions,
    MatchStatus,
    NormalizedResume,
    ProjectVerification,
    SectionScore,
    VerificationResult,
)
from .normalization import normalize_github_profile_url, normalize_resume
from .reports import render_github_report, render_linkedin_report
from .verifier import (
    is_reusable_verification,
    resolve_github_profile_url,
    verify_github_profile,
    verify_linkedin_profile,
)

__all__ = [
    "SECTION_WEIGHTS",
    "ErrorKind",
    "VerificationError",
    "run_github_verification",
    "run_linkedin_verification",
    "StructuredExtractor",
    "GithubVerificationResult",
    "LinkedInProfile",
    "LLMOptions",
    "MatchStatus",
    "NormalizedResume",
    "ProjectVerification",
    "SectionScore",
    "VerificationResult",
    "normalize_github_profile_url",
    "normalize_resume",
    "render_github_report",
    "render_linkedin_report",
    "is_reusable_verification",
    "resolve_github_profile_url",
    "verify_github_profile",
    "verify_linkedin_profile",
]
__version__ = "1.0.0"
