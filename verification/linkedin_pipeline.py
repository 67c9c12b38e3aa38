"""
LinkedIn Verification Pipeline

normalize -> extract_linkedin_profile -> summarize_resume -> cross_check_narrative -> score

The two narrative stages are optional: a failure there is recorded in the run
metadata and the deterministic score is still produced. A failed profile
extraction fails the whole run.
"""

import asyncio
import logging
from datetime import date
from typing import Any, Dict, Optional

from .agents import CROSS_CHECK_INSTRUCTIONS, LINKEDIN_PROFILE_INSTRUCTIONS, RESUME_ASSERTIONS_INSTRUCTIONS
from .config import SCORING_METHOD
from .errors import RunFatalError
from .llm_extractor import StructuredExtractor
from .models import LLMOptions, LinkedInProfile, NormalizedResume, VerificationResult
from .normalization import normalize_resume
from .orchestrator import Pipeline, RunState, Stage
from .reports import render_linkedin_report
from .schemas import CrossCheckFindings, ResumeAssertions
from .scoring_engine import score_linkedin_profile

logger = logging.getLogger(__name__)

PIPELINE_NAME = "linkedin_verification"
ACCUMULATORS = ("findings", "resume_assertions")


def _resume_json(resume: NormalizedResume) -> str:
    return resume.model_dump_json(by_alias=True, indent=2)


def build_linkedin_pipeline(
    extractor: StructuredExtractor,
    options: Optional[LLMOptions] = None,
    cancel_event: Optional[asyncio.Event] = None,
    as_of: Optional[date] = None,
    include_narrative: bool = True,
) -> Pipeline:
    """Wire the stages around one extractor; nothing here is shared between runs."""

    async def normalize(state: RunState) -> Dict[str, Any]:
        return {"resume": normalize_resume(state["resume_input"])}

    async def extract_linkedin_profile(state: RunState) -> Dict[str, Any]:
        text = (state.get("linkedin_text") or "").strip()
        if not text:
            raise RunFatalError("LinkedIn profile text is empty")
        logger.debug(f"LinkedIn text: {len(text)} chars")
        profile = await extractor.extract(
            LinkedInProfile,
            [
                {"role": "system", "content": "\n".join(LINKEDIN_PROFILE_INSTRUCTIONS)},
                {"role": "user", "content": text},
            ],
            options=options,
            cancel_event=cancel_event,
        )
        logger.info(
            f"Extracted LinkedIn profile: {len(profile.experiences)} experiences, "
            f"{len(profile.educations)} educations ✓"
        )
        return {"linkedin_profile": profile}

    async def summarize_resume(state: RunState) -> Dict[str, Any]:
        assertions = await extractor.extract(
            ResumeAssertions,
            [
                {"role": "system", "content": "\n".join(RESUME_ASSERTIONS_INSTRUCTIONS)},
                {"role": "user", "content": f"Resume JSON:\n{_resume_json(state['resume'])}"},
            ],
            options=options,
            cancel_event=cancel_event,
        )
        return {"resume_assertions": assertions.assertions}

    async def cross_check_narrative(state: RunState) -> Dict[str, Any]:
        profile: LinkedInProfile = state["linkedin_profile"]
        findings = await extractor.extract(
            CrossCheckFindings,
            [
                {"role": "system", "content": "\n".join(CROSS_CHECK_INSTRUCTIONS)},
                {
                    "role": "user",
                    "content": (
                        f"RESUME (JSON):\n{_resume_json(state['resume'])}\n\n"
                        f"LINKEDIN PROFILE (JSON):\n{profile.model_dump_json(by_alias=True, indent=2)}"
                    ),
                },
            ],
            options=options,
            cancel_event=cancel_event,
        )
        return {"findings": findings.findings}

    async def score(state: RunState) -> Dict[str, Any]:
        return {"scores": score_linkedin_profile(state["resume"], state["linkedin_profile"], as_of)}

    stages = [
        Stage("normalize", normalize),
        Stage("extract_linkedin_profile", extract_linkedin_profile, after=("normalize",)),
    ]
    if include_narrative:
        stages += [
            Stage("summarize_resume", summarize_resume, after=("normalize",), optional=True),
            Stage("cross_check_narrative", cross_check_narrative, after=("extract_linkedin_profile",), optional=True),
        ]
    stages.append(Stage("score", score, after=("extract_linkedin_profile",)))
    return Pipeline(PIPELINE_NAME, stages, accumulators=ACCUMULATORS)


async def run_linkedin_verification(
    resume: Any,
    linkedin_text: str,
    *,
    extractor: Optional[StructuredExtractor] = None,
    options: Optional[LLMOptions] = None,
    cancel_event: Optional[asyncio.Event] = None,
    as_of: Optional[date] = None,
    include_narrative: bool = True,
) -> VerificationResult:
    """
    Cross-check a résumé against the text of a LinkedIn PDF export.

    Args:
        resume: Stored résumé document or NormalizedResume
        linkedin_text: Text extracted from the LinkedIn PDF
        extractor: Structured extraction client (built from the environment if omitted)
        options: Per-call LLM options
        cancel_event: Set it to abandon the run
        as_of: Reference date for current roles and recency (defaults to today)
        include_narrative: Run the optional LLM narrative stages

    Returns:
        VerificationResult

    Raises:
        VerificationError: run-fatal failures (empty text, profile extraction failed, cancelled)
    """
    extractor = extractor or StructuredExtractor(options=options)
    as_of = as_of or date.today()
    pipeline = build_linkedin_pipeline(extractor, options, cancel_event, as_of, include_narrative)

    logger.info("=" * 60)
    logger.info("LINKEDIN VERIFICATION")
    logger.info("=" * 60)

    state = await pipeline.run(
        {"resume_input": resume, "linkedin_text": linkedin_text},
        cancel_event=cancel_event,
    )
    scores = state["scores"]
    metadata = state.metadata()
    metadata.update({
        "pipeline": PIPELINE_NAME,
        "as_of": as_of.isoformat(),
        "narrative_errors": dict(state.stage_errors),
    })

    result = VerificationResult(
        linkedin_profile=state["linkedin_profile"],
        findings=state.get("findings") or [],
        resume_assertions=state.get("resume_assertions") or [],
        section_scores=scores.section_scores,
        overall_score=scores.overall_score,
        scoring_method=SCORING_METHOD,
        experience_matches=scores.experience_matches,
        education_matches=scores.education_matches,
        run_metadata=metadata,
    )
    result = result.model_copy(update={"report_markdown": render_linkedin_report(result)})

    logger.info("=" * 60)
    logger.info(f"LINKEDIN VERIFICATION COMPLETE - run {state.run_id} - score {result.overall_score}/100")
    logger.info("=" * 60)
    return result
