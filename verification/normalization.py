"""
Input normalization for both pipelines.

Stored résumé documents arrive with camelCase keys, nested wrapper objects
(achievements as {"text": ...}, skills as {"name": ...}) and missing fields.
Everything is coalesced into a NormalizedResume here so the matching code
never sees a hole.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from pydantic import BaseModel

from .errors import InvalidProfileUrlError
from .models import (
    Certification,
    Education,
    NormalizedResume,
    Profiles,
    Project,
    WorkExperience,
)

logger = logging.getLogger(__name__)

_PROTOCOL_RE = re.compile(r"^(?:https?://)?(?:www\.)?", re.IGNORECASE)
_GITHUB_DOMAIN_RE = re.compile(r"^github\.com(?:/|$)", re.IGNORECASE)
_GITHUB_USERNAME_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})$")
_CAMEL_RE = re.compile(r"_([a-z])")

_LIST_ITEM_KEYS = ("text", "name", "title", "value", "url", "link")
_TRUE_STRINGS = {"true", "1", "yes", "y"}


class GithubProfileRef(NamedTuple):
    profile_url: str
    username: str


def _camel(key: str) -> str:
    return _CAMEL_RE.sub(lambda m: m.group(1).upper(), key)


def _as_dict(value: Any) -> Dict[str, Any]:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True)
    if isinstance(value, dict):
        return value
    return {}


def _get(data: Dict[str, Any], *keys: str) -> Any:
    """First non-None value among snake_case keys and their camelCase forms."""
    for key in keys:
        for candidate in (key, _camel(key)):
            value = data.get(candidate)
            if value is not None:
                return value
    return None


def _text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def _location_text(value: Any) -> str:
    if isinstance(value, dict):
        parts = [_text(value.get(key)) for key in ("city", "state", "region", "country")]
        return ", ".join(part for part in parts if part)
    return _text(value)


def _text_list(values: Any) -> List[str]:
    """Flatten strings or wrapper objects ({"text"}, {"name"}, ...) into non-empty strings."""
    if not values:
        return []
    if isinstance(values, str):
        return [values.strip()] if values.strip() else []
    result = []
    for item in values if isinstance(values, Iterable) else []:
        if isinstance(item, dict):
            text = next((_text(item.get(key)) for key in _LIST_ITEM_KEYS if _text(item.get(key))), "")
        else:
            text = _text(item)
        if text:
            result.append(text)
    return result


def _records(values: Any) -> List[Dict[str, Any]]:
    if not values or isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
        return []
    return [_as_dict(item) for item in values if _as_dict(item)]


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _work_experience(data: Dict[str, Any]) -> WorkExperience:
    return WorkExperience(
        employer_name=_text(_get(data, "employer_name", "company_name", "company")),
        job_title=_text(_get(data, "job_title", "title")),
        location=_location_text(_get(data, "location")),
        started_at=_get(data, "started_at", "start_date"),
        ended_at=_get(data, "ended_at", "end_date"),
        is_current_position=_flag(_get(data, "is_current_position", "is_current")),
        role=_text(_get(data, "role", "description")),
        achievements=_text_list(_get(data, "achievements")),
        skills=_text_list(_get(data, "skills")),
    )


def _education(data: Dict[str, Any]) -> Education:
    return Education(
        institution_name=_text(_get(data, "institution_name", "school_name", "institution")),
        degree_type_name=_text(_get(data, "degree_type_name", "degree")),
        field_of_study_name=_text(_get(data, "field_of_study_name", "field_of_study")),
        graduation_at=_get(data, "graduation_at", "end_date", "ended_at"),
        description=_text(_get(data, "description")),
    )


def _certification(data: Dict[str, Any]) -> Certification:
    return Certification(
        title=_text(_get(data, "title", "name")),
        issuer=_text(_get(data, "issuer", "issuing_organization")),
        start_date=_get(data, "start_date", "issued_at"),
        expiry_date=_get(data, "expiry_date", "expires_at"),
        link=_text(_get(data, "link", "credential_url", "url")),
    )


def _project(data: Dict[str, Any]) -> Project:
    return Project(
        title=_text(_get(data, "title", "name")) or "Untitled Project",
        description=_text(_get(data, "description")),
        achievements=_text_list(_get(data, "achievements")),
        skills=_text_list(_get(data, "skills")),
    )


def _flat_skills(data: Dict[str, Any]) -> List[str]:
    skills = _text_list(_get(data, "skills"))
    for category in _records(_get(data, "skills_categories")):
        skills.extend(_text_list(category.get("skills")))
    seen = set()
    unique = []
    for skill in skills:
        if skill.lower() not in seen:
            seen.add(skill.lower())
            unique.append(skill)
    return unique


def _summary_text(value: Any) -> str:
    if isinstance(value, dict):
        return _text(value.get("text") or value.get("content"))
    return _text(value)


def normalize_resume(resume: Any) -> NormalizedResume:
    """
    Map any résumé-shaped input (stored document dict, pydantic model, or an
    existing NormalizedResume) into a NormalizedResume.

    targetTitle falls back to targetJobTitle, then resumeName.
    """
    if isinstance(resume, NormalizedResume):
        return resume

    data = _as_dict(resume)
    if not data:
        logger.warning("Résumé input is empty or not a mapping; using an empty résumé")
        return NormalizedResume()

    profiles = _as_dict(_get(data, "profiles"))
    normalized = NormalizedResume(
        first_name=_text(_get(data, "first_name")),
        last_name=_text(_get(data, "last_name")),
        target_title=_text(_get(data, "target_title", "target_job_title", "resume_name")),
        email=_text(_get(data, "email")),
        phone_number=_text(_get(data, "phone_number", "phone")),
        location=_location_text(_get(data, "location")),
        summary=_summary_text(_get(data, "summary")),
        profiles=Profiles(
            linkedin=_text(_get(profiles, "linkedin")),
            github=_text(_get(profiles, "github")),
        ),
        links=_text_list(_get(data, "links")),
        work_experiences=[_work_experience(item) for item in _records(_get(data, "work_experiences"))],
        educations=[_education(item) for item in _records(_get(data, "educations"))],
        certifications=[_certification(item) for item in _records(_get(data, "certifications"))],
        skills=_flat_skills(data),
        projects=[_project(item) for item in _records(_get(data, "projects"))],
    )
    logger.debug(
        f"Normalized résumé: {len(normalized.work_experiences)} experiences, "
        f"{len(normalized.educations)} educations, {len(normalized.projects)} projects"
    )
    return normalized


def normalize_github_profile_url(raw: Optional[str]) -> GithubProfileRef:
    """
    Resolve a bare username, @handle, or profile URL (with or without
    protocol, www, trailing path) to the canonical repositories tab.

    Raises:
        InvalidProfileUrlError: no username segment can be isolated
    """
    text = _text(raw)
    if not text:
        raise InvalidProfileUrlError("GitHub profile URL is required")

    clean = _PROTOCOL_RE.sub("", text)
    clean = _GITHUB_DOMAIN_RE.sub("", clean)
    clean = re.split(r"[?#]", clean, maxsplit=1)[0]
    if clean.startswith("@"):
        clean = clean[1:]

    segments = [segment for segment in clean.split("/") if segment]
    username = segments[0] if segments else ""
    if not username or not _GITHUB_USERNAME_RE.match(username):
        raise InvalidProfileUrlError(f"Could not parse GitHub username from: {raw}")

    return GithubProfileRef(f"https://github.com/{username}?tab=repositories", username)


def build_repo_url(username: str, repo_name: Optional[str], fallback: Optional[str] = None) -> str:
    """Prefer a GitHub URL reported by the model; otherwise rebuild it from the repo name."""
    if fallback and "github.com" in fallback:
        return fallback
    if not username or not repo_name:
        return ""
    return f"https://github.com/{username}/{repo_name}"


def resolve_github_profile_url(resume: Any, explicit_url: Optional[str] = None) -> Optional[str]:
    """
    Pick the profile URL to verify against: an explicit URL, then the
    résumé's profiles.github, then the first résumé link on github.com.
    Returns None when the résumé carries no GitHub reference.
    """
    if _text(explicit_url):
        return _text(explicit_url)
    normalized = normalize_resume(resume)
    if normalized.profiles.github:
        return normalized.profiles.github
    return next((link for link in normalized.links if "github.com" in link.lower()), None)
