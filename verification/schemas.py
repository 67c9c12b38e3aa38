"""
Strict output contracts for every structured-extraction call.

Each schema is closed (unknown keys rejected) and every leaf has a default,
so an answer that omits data parses into empty strings/arrays instead of
failing or leaving holes mid-pipeline.
"""
from __future__ import annotations

from typing import List

from pydantic import Field

from .models import LinkedInProfile, MatchStatus, Project, Record

__all__ = [
    "LinkedInProfile",
    "ResumeAssertions",
    "CrossCheckFindings",
    "RepoCandidate",
    "RepoList",
    "ResumeProjects",
    "ProjectMapping",
    "ProjectRepoMappings",
    "ProjectVerificationReport",
]


class ResumeAssertions(Record):
    assertions: List[str] = Field(
        default_factory=list,
        description="Concise factual claims the résumé makes (roles, dates, degrees, skills).",
    )


class CrossCheckFindings(Record):
    findings: List[str] = Field(
        default_factory=list,
        description="Bullet findings comparing résumé claims with the LinkedIn profile.",
    )


class RepoCandidate(Record):
    name: str = Field(default="", description="Repository name as shown on the profile.")
    url: str = Field(default="", description="Full repository URL. Empty string if not shown.")
    description: str = Field(default="", description="Repository description. Empty string if missing.")
    topics: List[str] = Field(default_factory=list, description="Topics or primary language tags.")
    stars: float = Field(default=0, ge=0, description="Star count as displayed.")
    forks: float = Field(default=0, ge=0)


class RepoList(Record):
    repos: List[RepoCandidate] = Field(
        default_factory=list,
        description="Repositories owned by the profile user. Forks are allowed; others' repos are excluded.",
    )


class ResumeProjects(Record):
    projects: List[Project] = Field(default_factory=list, description="Technical projects listed on the résumé.")


class ProjectMapping(Record):
    project_title: str = Field(description="Résumé project title, copied verbatim.")
    repo_name: str = Field(default="", description="Best matching repository name. Empty string if none.")
    repo_url: str = Field(default="", description="Repository URL. Empty string if none.")
    status: MatchStatus = Field(
        default=MatchStatus.NOT_FOUND, description="MATCHED or NOT_FOUND. Weak matches are NOT_FOUND."
    )
    match_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reasoning: str = Field(default="", description="One short sentence.")


class ProjectRepoMappings(Record):
    project_mappings: List[ProjectMapping] = Field(
        default_factory=list, description="Exactly one mapping per résumé project."
    )


class ProjectVerificationReport(Record):
    repo_summary: str = Field(default="", description="What the repository actually contains.")
    supported_claims: List[str] = Field(default_factory=list, description="Résumé claims the repository proves.")
    missing_claims: List[str] = Field(default_factory=list, description="Résumé claims with no evidence in the repository.")
    risk_flags: List[str] = Field(
        default_factory=list, description="E.g. empty repo, fork without changes, stale activity."
    )
    alignment_score: float = Field(
        default=0, ge=0, le=100,
        description="0-100: does the code prove the project exists and uses the claimed tech?",
    )
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    reasoning: str = Field(default="")
