"""
GitHub Verification Pipeline

extract_resume_projects -> scrape_profile -> extract_repos -> match_projects -> verify_projects

The profile scrape is run-fatal (nothing to match without it). Everything
after matching is per-project: one repository failing degrades only that
project to FAILED.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .agents import (
    PROJECT_MATCH_INSTRUCTIONS,
    PROJECT_VERIFICATION_INSTRUCTIONS,
    REPO_LIST_INSTRUCTIONS,
    RESUME_PROJECTS_INSTRUCTIONS,
)
from .config import MIN_PROJECT_MATCH_CONFIDENCE, SCRAPE_CONFIG
from .errors import RunFatalError, ScrapeError, VerificationCancelled, VerificationError
from .llm_extractor import StructuredExtractor
from .models import (
    GithubVerificationResult,
    LLMOptions,
    MatchStatus,
    NormalizedResume,
    Project,
    ProjectVerification,
)
from .normalization import build_repo_url, normalize_github_profile_url, normalize_resume
from .orchestrator import Pipeline, RunState, Stage, fan_out
from .schemas import (
    ProjectMapping,
    ProjectRepoMappings,
    ProjectVerificationReport,
    RepoCandidate,
    RepoList,
    ResumeProjects,
)
from .scoring_engine import compute_github_overall_score
from .scraper import FirecrawlScraper, PageScraper
from .similarity import normalize_text, round_half_up

logger = logging.getLogger(__name__)

PIPELINE_NAME = "github_verification"
EMPTY_REPO_FLAG = "Repository could not be scraped (Empty or Private)"


def truncate(text: str, max_chars: int) -> str:
    return f"{text[:max_chars]}... [TRUNCATED]" if len(text) > max_chars else text


def reconcile_mappings(
    projects: Sequence[Project],
    raw_mappings: Sequence[ProjectMapping],
    repos: Sequence[RepoCandidate],
    username: str,
) -> List[ProjectMapping]:
    """
    Exactly one mapping per résumé project, in résumé order. Projects that
    share a title share the first mapping returned for it.

    A MATCHED mapping is downgraded to NOT_FOUND when its confidence is below
    MIN_PROJECT_MATCH_CONFIDENCE or no repository URL can be resolved.
    """
    by_title: Dict[str, ProjectMapping] = {}
    for mapping in raw_mappings:
        by_title.setdefault(normalize_text(mapping.project_title), mapping)
    repo_urls = {normalize_text(repo.name): repo.url for repo in repos if repo.name}

    reconciled = []
    for project in projects:
        mapping = by_title.get(normalize_text(project.title))
        if mapping is None:
            reconciled.append(ProjectMapping(
                project_title=project.title,
                status=MatchStatus.NOT_FOUND,
                reasoning="No mapping returned for this project",
            ))
            continue

        repo_url = build_repo_url(
            username, mapping.repo_name, mapping.repo_url or repo_urls.get(normalize_text(mapping.repo_name))
        )
        status, reasoning = mapping.status, mapping.reasoning
        if status == MatchStatus.MATCHED and mapping.match_confidence < MIN_PROJECT_MATCH_CONFIDENCE:
            status = MatchStatus.NOT_FOUND
            reasoning = f"{reasoning} (confidence {mapping.match_confidence:.2f} below threshold)".strip()
        elif status == MatchStatus.MATCHED and not repo_url:
            status = MatchStatus.NOT_FOUND
            reasoning = f"{reasoning} (repository URL could not be resolved)".strip()
        elif status != MatchStatus.MATCHED:
            status = MatchStatus.NOT_FOUND

        reconciled.append(ProjectMapping(
            project_title=project.title,
            repo_name=mapping.repo_name,
            repo_url=repo_url,
            status=status,
            match_confidence=mapping.match_confidence,
            reasoning=reasoning,
        ))
    return reconciled


def build_github_pipeline(
    extractor: StructuredExtractor,
    scraper: PageScraper,
    username: str,
    options: Optional[LLMOptions] = None,
    cancel_event: Optional[asyncio.Event] = None,
    max_concurrency: Optional[int] = None,
) -> Pipeline:
    """Wire the stages for one run against ``username``."""

    async def extract_resume_projects(state: RunState) -> Dict[str, Any]:
        resume: NormalizedResume = state["resume"]
        if resume.projects:
            logger.info(f"Using {len(resume.projects)} structured projects from the résumé; skipping extraction")
            return {"resume_projects": list(resume.projects), "project_source": "resume"}

        extracted = await extractor.extract(
            ResumeProjects,
            [
                {"role": "system", "content": "\n".join(RESUME_PROJECTS_INSTRUCTIONS)},
                {"role": "user", "content": f"Resume JSON:\n{resume.model_dump_json(by_alias=True, indent=2)}"},
            ],
            options=options,
            cancel_event=cancel_event,
        )
        logger.info(f"Extracted {len(extracted.projects)} projects from the résumé ✓")
        return {"resume_projects": extracted.projects, "project_source": "llm"}

    async def scrape_profile(state: RunState) -> Dict[str, Any]:
        profile_url = state["github_profile_url"]
        try:
            markdown = await scraper.scrape_markdown(profile_url, cancel_event)
        except ScrapeError as exc:
            raise RunFatalError(f"Failed to scrape GitHub profile: {profile_url} ({exc.message})", cause=exc) from exc
        if not (markdown or "").strip():
            raise RunFatalError(f"Failed to scrape GitHub profile: {profile_url}")
        return {"profile_markdown": markdown}

    async def extract_repos(state: RunState) -> Dict[str, Any]:
        repos = await extractor.extract(
            RepoList,
            [
                {"role": "system", "content": "\n".join(REPO_LIST_INSTRUCTIONS)},
                {
                    "role": "user",
                    "content": (
                        f"Profile URL: {state['github_profile_url']}\n"
                        f"Content:\n{truncate(state['profile_markdown'], SCRAPE_CONFIG['profile_max_chars'])}"
                    ),
                },
            ],
            options=options,
            cancel_event=cancel_event,
        )
        logger.info(f"Found {len(repos.repos)} repositories on the profile ✓")
        return {"repos": repos.repos}

    async def match_projects(state: RunState) -> Dict[str, Any]:
        projects: List[Project] = state["resume_projects"]
        repos: List[RepoCandidate] = state["repos"]
        if not projects:
            return {"mappings": []}
        if not repos:
            raw: List[ProjectMapping] = [
                ProjectMapping(project_title=p.title, reasoning="No repositories found on the profile")
                for p in projects
            ]
        else:
            repo_lines = [{"name": r.name, "desc": r.description, "topics": r.topics} for r in repos]
            project_lines = [{"title": p.title, "desc": p.description, "skills": p.skills} for p in projects]
            result = await extractor.extract(
                ProjectRepoMappings,
                [
                    {"role": "system", "content": "\n".join(PROJECT_MATCH_INSTRUCTIONS)},
                    {
                        "role": "user",
                        "content": (
                            f"Repos:\n{json.dumps(repo_lines, indent=2, ensure_ascii=False)}\n\n"
                            f"Projects:\n{json.dumps(project_lines, indent=2, ensure_ascii=False)}"
                        ),
                    },
                ],
                options=options,
                cancel_event=cancel_event,
            )
            raw = result.project_mappings
        mappings = reconcile_mappings(projects, raw, repos, username)
        matched = sum(1 for m in mappings if m.status == MatchStatus.MATCHED)
        logger.info(f"Matched {matched}/{len(mappings)} projects to repositories")
        return {"mappings": mappings}

    async def verify_projects(state: RunState) -> Dict[str, Any]:
        # mappings are positional: mappings[i] belongs to resume_projects[i]
        pairs = list(zip(state["resume_projects"], state["mappings"]))

        async def verify_one(pair: Tuple[Project, ProjectMapping]) -> ProjectVerification:
            project, mapping = pair
            base = ProjectVerification(
                project_title=mapping.project_title,
                repo_name=mapping.repo_name,
                repo_url=mapping.repo_url,
                status=mapping.status,
                match_confidence=mapping.match_confidence,
                match_reasoning=mapping.reasoning,
            )
            if base.status != MatchStatus.MATCHED:
                return base

            try:
                markdown = await scraper.scrape_markdown(mapping.repo_url, cancel_event)
                if not (markdown or "").strip():
                    logger.warning(f"Repository for '{mapping.project_title}' is empty or private")
                    return base.model_copy(update={"risk_flags": [EMPTY_REPO_FLAG]})

                claim = project.model_dump_json(by_alias=True, indent=2)
                report = await extractor.extract(
                    ProjectVerificationReport,
                    [
                        {"role": "system", "content": "\n".join(PROJECT_VERIFICATION_INSTRUCTIONS)},
                        {
                            "role": "user",
                            "content": (
                                f"Project Claim:\n{claim}\n\n"
                                f"Repo Readme/Code:\n{truncate(markdown, SCRAPE_CONFIG['repo_max_chars'])}"
                            ),
                        },
                    ],
                    options=options,
                    cancel_event=cancel_event,
                )
            except VerificationCancelled:
                raise
            except Exception as exc:
                message = exc.message if isinstance(exc, VerificationError) else str(exc)
                logger.warning(f"Verification failed for '{mapping.project_title}': {message}")
                return base.model_copy(update={
                    "status": MatchStatus.FAILED,
                    "risk_flags": [f"Verification Error: {message}"],
                })

            alignment = round_half_up(report.alignment_score)
            logger.info(f"Verified '{mapping.project_title}': alignment {alignment} ✓")
            return base.model_copy(update={
                "repo_summary": report.repo_summary,
                "supported_claims": list(report.supported_claims),
                "missing_claims": list(report.missing_claims),
                "risk_flags": list(report.risk_flags),
                "alignment_score": alignment,
                "match_confidence": max(base.match_confidence, report.confidence),
            })

        results = await fan_out(pairs, verify_one, limit=max_concurrency)
        return {"project_results": results}

    return Pipeline(
        PIPELINE_NAME,
        [
            Stage("extract_resume_projects", extract_resume_projects),
            Stage("scrape_profile", scrape_profile, after=("extract_resume_projects",)),
            Stage("extract_repos", extract_repos, after=("scrape_profile",)),
            Stage("match_projects", match_projects, after=("extract_resume_projects", "extract_repos")),
            Stage("verify_projects", verify_projects, after=("match_projects",)),
        ],
    )


async def run_github_verification(
    resume: Any,
    github_profile_url: str,
    *,
    extractor: Optional[StructuredExtractor] = None,
    scraper: Optional[PageScraper] = None,
    options: Optional[LLMOptions] = None,
    cancel_event: Optional[asyncio.Event] = None,
    max_concurrency: Optional[int] = None,
) -> GithubVerificationResult:
    """
    Verify résumé projects against the repositories of a GitHub profile.

    Args:
        resume: Stored résumé document or NormalizedResume
        github_profile_url: Username, @handle or profile URL
        extractor: Structured extraction client (built from the environment if omitted)
        scraper: Page scraper (Firecrawl if omitted)
        options: Per-call LLM options
        cancel_event: Set it to abandon the run
        max_concurrency: Upper bound on concurrent per-project verifications

    Returns:
        GithubVerificationResult

    Raises:
        InvalidProfileUrlError: no username could be parsed (before any network call)
        VerificationError: run-fatal failures (profile scrape empty, extraction failed, cancelled)
    """
    profile_url, username = normalize_github_profile_url(github_profile_url)
    extractor = extractor or StructuredExtractor(options=options)
    scraper = scraper or FirecrawlScraper()
    max_concurrency = max_concurrency or SCRAPE_CONFIG["max_concurrent_verifications"]

    logger.info("=" * 60)
    logger.info(f"GITHUB VERIFICATION - {username}")
    logger.info("=" * 60)

    pipeline = build_github_pipeline(extractor, scraper, username, options, cancel_event, max_concurrency)
    state = await pipeline.run(
        {"resume": normalize_resume(resume), "github_profile_url": profile_url},
        cancel_event=cancel_event,
    )

    project_results: List[ProjectVerification] = state.get("project_results") or []
    metadata = state.metadata()
    metadata.update({
        "pipeline": PIPELINE_NAME,
        "profile_username": username,
        "matched_projects": sum(1 for p in project_results if p.status == MatchStatus.MATCHED),
        "total_projects": len(project_results),
        "repos_considered": len(state.get("repos") or []),
        "project_source": state.get("project_source"),
    })

    result = GithubVerificationResult(
        github_profile_url=profile_url,
        profile_markdown=state.get("profile_markdown") or "",
        project_results=project_results,
        overall_score=compute_github_overall_score(project_results),
        run_metadata=metadata,
    )

    logger.info("=" * 60)
    logger.info(f"GITHUB VERIFICATION COMPLETE - run {state.run_id} - score {result.overall_score}/100")
    logger.info("=" * 60)
    return result
