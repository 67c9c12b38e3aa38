from __future__ import annotations

from enum import Enum
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .similarity import normalize_date


class MatchStatus(str, Enum):
    """Outcome of matching one résumé entity against external records."""
    MATCHED = "MATCHED"
    NOT_FOUND = "NOT_FOUND"
    FAILED = "FAILED"


class Record(BaseModel):
    """
    Base for every plain record exchanged between stages.

    Unknown fields are rejected, camelCase and snake_case keys are both
    accepted, and a null sent for a field that has a non-null default is
    replaced by that default.
    """
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls_for_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        cleaned = dict(data)
        for name, field in cls.model_fields.items():
            if field.is_required() or (field.default is None and field.default_factory is None):
                continue
            for key in {name, field.alias or name}:
                if key in cleaned and cleaned[key] is None:
                    del cleaned[key]
        return cleaned

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


def _to_iso_date(cls, value: Any) -> Optional[str]:
    return normalize_date(value)


class WorkExperience(Record):
    employer_name: str = ""
    job_title: str = ""
    location: str = ""
    started_at: Optional[str] = None
    ended_at: Optional[str] = None
    is_current_position: bool = False
    role: str = ""
    achievements: List[str] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)

    normalize_dates = field_validator("started_at", "ended_at", mode="before")(_to_iso_date)


class Education(Record):
    institution_name: str = ""
    degree_type_name: str = ""
    field_of_study_name: str = ""
    graduation_at: Optional[str] = None
    description: str = ""

    normalize_dates = field_validator("graduation_at", mode="before")(_to_iso_date)


class Certification(Record):
    title: str = ""
    issuer: str = ""
    start_date: Optional[str] = None
    expiry_date: Optional[str] = None
    link: str = ""

    normalize_dates = field_validator("start_date", "expiry_date", mode="before")(_to_iso_date)


class Project(Record):
    title: str = ""
    description: str = ""
    achievements: List[str] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)


class Profiles(Record):
    linkedin: str = ""
    github: str = ""


class NormalizedResume(Record):
    """Canonical résumé shape consumed by both pipelines."""
    first_name: str = ""
    last_name: str = ""
    target_title: str = ""
    email: str = ""
    phone_number: str = ""
    location: str = ""
    summary: str = ""
    profiles: Profiles = Field(default_factory=Profiles)
    links: List[str] = Field(default_factory=list)
    work_experiences: List[WorkExperience] = Field(default_factory=list)
    educations: List[Education] = Field(default_factory=list)
    certifications: List[Certification] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    projects: List[Project] = Field(default_factory=list)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class LinkedInExperience(Record):
    title: str = Field(default="", description="Role or job title exactly as listed. Empty string if missing.")
    company_name: str = Field(default="", description="Company/organization name. Empty string if missing.")
    location: str = Field(default="", description="Location shown for the role. Empty string if not listed.")
    started_at: Optional[str] = Field(default=None, description="Start date as 'YYYY-MM' or 'YYYY'. Null if not provided.")
    ended_at: Optional[str] = Field(
        default=None, description="End date as 'YYYY-MM' or 'YYYY'. Null if current or not provided."
    )
    description: str = Field(default="", description="Responsibilities text. Empty string if missing.")
    achievements: List[str] = Field(default_factory=list, description="Achievement bullets. Empty array if none.")
    skills: List[str] = Field(default_factory=list, description="Skills listed under this role. Empty array if none.")

    normalize_dates = field_validator("started_at", "ended_at", mode="before")(_to_iso_date)


class LinkedInCertification(Record):
    title: str = Field(default="", description="Certification or license title. Empty string if missing.")
    issuer: str = Field(default="", description="Issuing organization. Empty string if missing.")
    start_date: Optional[str] = Field(default=None, description="Issue date as 'YYYY-MM' or 'YYYY'. Null if missing.")
    expiry_date: Optional[str] = Field(default=None, description="Expiry date. Null if no expiry or missing.")
    credential_url: str = Field(default="", description="Verification URL. Empty string if missing.")

    normalize_dates = field_validator("start_date", "expiry_date", mode="before")(_to_iso_date)


class LinkedInProfile(Record):
    """Structured LinkedIn profile extracted from a PDF export. Immutable once extracted."""
    first_name: str = Field(default="", description="First name. Empty string if not found.")
    last_name: str = Field(default="", description="Last name. Empty string if not found.")
    headline: str = Field(default="", description="Headline text under the name. Empty string if missing.")
    about: str = Field(default="", description="About/Summary section text. Empty string if missing.")
    location: str = Field(default="", description="Location from the profile header. Empty string if missing.")
    email: str = Field(default="", description="Email address if visible. Empty string if missing.")
    phone: str = Field(default="", description="Phone number if visible. Empty string if missing.")
    websites: List[str] = Field(default_factory=list, description="Personal websites or portfolio links.")
    experiences: List[LinkedInExperience] = Field(
        default_factory=list, description="All experiences in reverse chronological order."
    )
    educations: List[Education] = Field(default_factory=list, description="All education entries.")
    certifications: List[LinkedInCertification] = Field(
        default_factory=list, description="Certifications or licenses listed."
    )
    skills: List[str] = Field(default_factory=list, description="Flat list from the skills section.")
    languages: List[str] = Field(default_factory=list, description="Languages listed. Empty array if none.")
    accomplishments: List[str] = Field(
        default_factory=list, description="Honors, awards, publications. Empty array if none."
    )

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class SectionScore(Record):
    section: str
    score: int = Field(ge=0, le=100)
    weight: float = Field(ge=0.0, le=1.0)
    rationale: str = ""
    coverage: float = Field(default=0.0, ge=0.0, le=1.0)


class EntryMatch(Record):
    """Best LinkedIn counterpart found for one résumé entry."""
    resume_index: int
    resume_label: str
    linkedin_index: Optional[int] = None
    linkedin_label: str = ""
    score: float = Field(ge=0.0, le=1.0)
    status: MatchStatus = MatchStatus.NOT_FOUND


class ProjectVerification(Record):
    project_title: str
    repo_name: str = ""
    repo_url: str = ""
    status: MatchStatus
    match_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    match_reasoning: str = ""
    repo_summary: str = ""
    supported_claims: List[str] = Field(default_factory=list)
    missing_claims: List[str] = Field(default_factory=list)
    risk_flags: List[str] = Field(default_factory=list)
    alignment_score: int = Field(default=0, ge=0, le=100)


class VerificationResult(Record):
    """Result of one LinkedIn cross-check run."""
    linkedin_profile: LinkedInProfile
    findings: List[str] = Field(default_factory=list)
    resume_assertions: List[str] = Field(default_factory=list)
    section_scores: List[SectionScore] = Field(default_factory=list)
    overall_score: int = Field(ge=0, le=100)
    scoring_method: str
    experience_matches: List[EntryMatch] = Field(default_factory=list)
    education_matches: List[EntryMatch] = Field(default_factory=list)
    report_markdown: str = ""
    run_metadata: Dict[str, Any] = Field(default_factory=dict)


class GithubVerificationResult(Record):
    """Result of one GitHub project verification run."""
    github_profile_url: str
    profile_markdown: str = ""
    project_results: List[ProjectVerification] = Field(default_factory=list)
    overall_score: int = Field(ge=0, le=100)
    run_metadata: Dict[str, Any] = Field(default_factory=dict)


class LLMOptions(BaseModel):
    """Per-call runtime options; unset values fall back to LLM_CONFIG / Settings."""
    model_config = ConfigDict(protected_namespaces=())
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    timeout_seconds: Optional[float] = None
    retries: Optional[int] = Field(default=None, ge=0)
    api_key: Optional[str] = None


class Settings(BaseModel):
    model_config = ConfigDict(protected_namespaces=())
    openai_api_key: Optional[str] = None
    firecrawl_api_key: Optional[str] = None
    model_name: str = "gpt-4.1-mini"
    request_timeout_seconds: float = 60
    max_retries: int = 3
    max_concurrent_verifications: int = 8
    verification_reuse_hours: int = 24

