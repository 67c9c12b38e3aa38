"""
Deterministic Scoring Engine

All scoring functions are deterministic - same inputs produce same outputs.
No AI/LLM is used in this module.
"""

import logging
from datetime import date
from typing import Any, Callable, List, NamedTuple, Optional, Sequence, Tuple

from rapidfuzz import fuzz

from .config import (
    CONTACT_SCORES,
    COVERAGE_BLEND,
    COVERAGE_THRESHOLD,
    DATE_CLOSENESS_BEYOND,
    EDUCATION_MATCH_WEIGHTS,
    EXPERIENCE_MATCH_WEIGHTS,
    IDENTITY_WEIGHTS,
    MIN_PHONE_DIGITS_FOR_FULL_MATCH,
    NEUTRAL_SCORES,
    RECENCY_FLOOR,
    RECENCY_HALF_LIFE_MONTHS,
    RECENCY_UNKNOWN,
    SECTION_WEIGHTS,
    SKILLS_WEIGHTS,
    SUMMARY_WEIGHTS,
)
from .models import (
    Education,
    EntryMatch,
    LinkedInExperience,
    LinkedInProfile,
    MatchStatus,
    NormalizedResume,
    ProjectVerification,
    SectionScore,
    WorkExperience,
)
from .similarity import (
    clamp,
    company_similarity,
    coverage_ratio,
    date_closeness,
    digits_only,
    duration_closeness,
    duration_months,
    fuzzy_ratio,
    month_difference,
    normalize_date,
    normalize_text,
    round_half_up,
    set_similarity,
    smooth_date_closeness,
    to_percent,
    token_set_similarity,
    tokenize,
    weighted_average,
)

logger = logging.getLogger(__name__)


class LinkedInScores(NamedTuple):
    section_scores: List[SectionScore]
    overall_score: int
    experience_matches: List[EntryMatch]
    education_matches: List[EntryMatch]


def _text_or_neutral(a: str, b: str, scorer: Callable[[str, str], float] = token_set_similarity) -> float:
    """Compare two free-text fields; absence on either side is not evidence of a mismatch."""
    if not normalize_text(a) or not normalize_text(b):
        return NEUTRAL_SCORES["text"]
    return scorer(a, b)


def _location_similarity(a: str, b: str) -> float:
    return max(token_set_similarity(a, b, min_length=2), fuzzy_ratio(a, b) if len(normalize_text(a)) > 3 else 0.0)


# ---------------------------------------------------------------------------
# Experience
# ---------------------------------------------------------------------------

def experience_pair_score(resume_exp: WorkExperience, linkedin_exp: LinkedInExperience, as_of: date) -> float:
    """
    Composite similarity between one résumé role and one LinkedIn role (0-1).

    Company and title dominate (58% combined); dates, duration, location,
    skills and achievement text share the rest.
    """
    if resume_exp.is_current_position:
        # Résumé says current: LinkedIn must have no end date
        end_score = 1.0 if not linkedin_exp.ended_at else DATE_CLOSENESS_BEYOND
        resume_end = None
    else:
        end_score = smooth_date_closeness(resume_exp.ended_at, linkedin_exp.ended_at)
        resume_end = resume_exp.ended_at

    resume_span = duration_months(resume_exp.started_at, resume_end, as_of if resume_exp.is_current_position else None)
    linkedin_span = duration_months(linkedin_exp.started_at, linkedin_exp.ended_at, as_of)

    resume_text = " ".join([resume_exp.role] + resume_exp.achievements)
    linkedin_text = " ".join([linkedin_exp.description] + linkedin_exp.achievements)

    if resume_exp.skills and linkedin_exp.skills:
        skills_score = set_similarity(resume_exp.skills, linkedin_exp.skills)
    else:
        skills_score = NEUTRAL_SCORES["text"]

    components = {
        "company": company_similarity(resume_exp.employer_name, linkedin_exp.company_name),
        "title": token_set_similarity(resume_exp.job_title, linkedin_exp.title),
        "location": _text_or_neutral(resume_exp.location, linkedin_exp.location, _location_similarity),
        "start_date": smooth_date_closeness(resume_exp.started_at, linkedin_exp.started_at),
        "end_date": end_score,
        "duration": duration_closeness(resume_span, linkedin_span),
        "skills": skills_score,
        "achievements": _text_or_neutral(resume_text, linkedin_text),
    }
    keys = list(EXPERIENCE_MATCH_WEIGHTS)
    return clamp(weighted_average([components[k] for k in keys], [EXPERIENCE_MATCH_WEIGHTS[k] for k in keys]))


def recency_weight(resume_exp: WorkExperience, as_of: date) -> float:
    """Current roles weigh 1.0; older roles decay with a 3-year half-life down to a floor."""
    if resume_exp.is_current_position:
        return 1.0
    ended = normalize_date(resume_exp.ended_at)
    if ended is None:
        return RECENCY_UNKNOWN
    if ended >= as_of.isoformat():
        return 1.0
    months = month_difference(ended, as_of) or 0
    return max(RECENCY_FLOOR, 0.5 ** (months / RECENCY_HALF_LIFE_MONTHS))


def _best_match(score_fn: Callable[[Any], float], candidates: Sequence[Any]) -> Tuple[float, Optional[int]]:
    best_score, best_index = 0.0, None
    for index, candidate in enumerate(candidates):
        score = score_fn(candidate)
        if best_index is None or score > best_score:
            best_score, best_index = score, index
    return best_score, best_index


def _entry_match(index: int, label: str, best: float, best_index: Optional[int], candidate_label: str) -> EntryMatch:
    status = MatchStatus.MATCHED if best_index is not None and best >= COVERAGE_THRESHOLD else MatchStatus.NOT_FOUND
    return EntryMatch(
        resume_index=index,
        resume_label=label,
        linkedin_index=best_index,
        linkedin_label=candidate_label,
        score=round(clamp(best), 4),
        status=status,
    )


def _label(*parts: str) -> str:
    return " @ ".join(part for part in parts if part) or "(untitled)"


def _blend_with_coverage(best_scores: List[float], weights: List[float]) -> Tuple[float, float]:
    weighted_best = weighted_average(best_scores, weights)
    coverage = sum(1 for s in best_scores if s >= COVERAGE_THRESHOLD) / len(best_scores)
    return (1 - COVERAGE_BLEND) * weighted_best + COVERAGE_BLEND * coverage, coverage


def score_experience(
    resume: NormalizedResume, profile: LinkedInProfile, as_of: date
) -> Tuple[SectionScore, List[EntryMatch]]:
    """
    Best-match each résumé role against all LinkedIn roles, weight by recency,
    then blend in the share of roles that cleared the coverage threshold.

    Two résumé roles may pick the same LinkedIn role; matching is not exclusive.
    """
    weight = SECTION_WEIGHTS["experience"]
    if not resume.work_experiences:
        return SectionScore(
            section="experience", score=0, weight=weight, coverage=0.0,
            rationale="No résumé work experiences to verify",
        ), []

    matches, best_scores, weights = [], [], []
    for index, resume_exp in enumerate(resume.work_experiences):
        best, best_index = _best_match(
            lambda linkedin_exp: experience_pair_score(resume_exp, linkedin_exp, as_of), profile.experiences
        )
        candidate = profile.experiences[best_index] if best_index is not None else None
        matches.append(_entry_match(
            index,
            _label(resume_exp.job_title, resume_exp.employer_name),
            best,
            best_index,
            _label(candidate.title, candidate.company_name) if candidate else "",
        ))
        best_scores.append(best)
        weights.append(recency_weight(resume_exp, as_of))

    fraction, coverage = _blend_with_coverage(best_scores, weights)
    matched = sum(1 for m in matches if m.status == MatchStatus.MATCHED)
    score = to_percent(fraction)
    logger.info(f"Experience score: {score} ({matched}/{len(matches)} roles matched)")
    return SectionScore(
        section="experience",
        score=score,
        weight=weight,
        coverage=round(coverage, 4),
        rationale=(
            f"{matched}/{len(matches)} résumé roles matched a LinkedIn role; "
            f"recency-weighted best-match average {weighted_average(best_scores, weights):.2f}"
        ),
    ), matches


# ---------------------------------------------------------------------------
# Education
# ---------------------------------------------------------------------------

def education_pair_score(resume_edu: Education, linkedin_edu: Education) -> float:
    """Composite similarity between two education entries, institution and degree first."""
    components = {
        "institution": token_set_similarity(resume_edu.institution_name, linkedin_edu.institution_name),
        "degree": _text_or_neutral(resume_edu.degree_type_name, linkedin_edu.degree_type_name),
        "field_of_study": _text_or_neutral(resume_edu.field_of_study_name, linkedin_edu.field_of_study_name),
        "graduation": date_closeness(resume_edu.graduation_at, linkedin_edu.graduation_at),
    }
    keys = list(EDUCATION_MATCH_WEIGHTS)
    return clamp(weighted_average([components[k] for k in keys], [EDUCATION_MATCH_WEIGHTS[k] for k in keys]))


def score_education(resume: NormalizedResume, profile: LinkedInProfile) -> Tuple[SectionScore, List[EntryMatch]]:
    weight = SECTION_WEIGHTS["education"]
    if not resume.educations:
        return SectionScore(
            section="education", score=0, weight=weight, coverage=0.0,
            rationale="No résumé education entries to verify",
        ), []

    matches, best_scores = [], []
    for index, resume_edu in enumerate(resume.educations):
        best, best_index = _best_match(
            lambda linkedin_edu: education_pair_score(resume_edu, linkedin_edu), profile.educations
        )
        candidate = profile.educations[best_index] if best_index is not None else None
        matches.append(_entry_match(
            index,
            _label(resume_edu.degree_type_name, resume_edu.institution_name),
            best,
            best_index,
            _label(candidate.degree_type_name, candidate.institution_name) if candidate else "",
        ))
        best_scores.append(best)

    fraction, coverage = _blend_with_coverage(best_scores, [1.0] * len(best_scores))
    matched = sum(1 for m in matches if m.status == MatchStatus.MATCHED)
    score = to_percent(fraction)
    logger.info(f"Education score: {score} ({matched}/{len(matches)} entries matched)")
    return SectionScore(
        section="education",
        score=score,
        weight=weight,
        coverage=round(coverage, 4),
        rationale=f"{matched}/{len(matches)} résumé education entries matched a LinkedIn entry",
    ), matches


# ---------------------------------------------------------------------------
# Identity & contact
# ---------------------------------------------------------------------------

def score_identity(resume: NormalizedResume, profile: LinkedInProfile) -> SectionScore:
    resume_name, linkedin_name = normalize_text(resume.full_name), normalize_text(profile.full_name)
    if not resume_name or not linkedin_name:
        return SectionScore(
            section="identity", score=0, weight=SECTION_WEIGHTS["identity"], coverage=0.0,
            rationale="Name missing on résumé or LinkedIn profile",
        )

    name_score = fuzz.token_sort_ratio(resume_name, linkedin_name) / 100.0
    if normalize_text(resume.location) and normalize_text(profile.location):
        location_score = _location_similarity(resume.location, profile.location)
        fraction = weighted_average(
            [name_score, location_score], [IDENTITY_WEIGHTS["name"], IDENTITY_WEIGHTS["location"]]
        )
        rationale = f"Name similarity {name_score:.2f}, location similarity {location_score:.2f}"
    else:
        fraction = name_score
        rationale = f"Name similarity {name_score:.2f}; location not comparable"

    return SectionScore(
        section="identity", score=to_percent(fraction), weight=SECTION_WEIGHTS["identity"],
        coverage=1.0, rationale=rationale,
    )


def email_score(resume_email: str, linkedin_email: str) -> Optional[float]:
    """None when either side has no e-mail."""
    a, b = (resume_email or "").strip().lower(), (linkedin_email or "").strip().lower()
    if not a or not b:
        return None
    if a == b:
        return CONTACT_SCORES["email_exact"]
    local_a, _, domain_a = a.partition("@")
    local_b, _, domain_b = b.partition("@")
    local_similarity = fuzz.ratio(local_a, local_b) / 100.0 if local_a and local_b else 0.0
    if domain_a and domain_a == domain_b:
        return CONTACT_SCORES["email_same_domain_base"] + CONTACT_SCORES["email_same_domain_fuzzy"] * local_similarity
    if local_a and local_a == local_b:
        return CONTACT_SCORES["email_local_only"]
    return 0.0


def phone_score(resume_phone: str, linkedin_phone: str) -> Optional[float]:
    """Tiered by normalized digit suffix; None when either side has no digits."""
    a, b = digits_only(resume_phone), digits_only(linkedin_phone)
    if not a or not b:
        return None
    tail_a, tail_b = a[-10:], b[-10:]
    if tail_a == tail_b and len(tail_a) >= MIN_PHONE_DIGITS_FOR_FULL_MATCH:
        return CONTACT_SCORES["phone_full"]
    if len(a) >= 4 and len(b) >= 4 and a[-4:] == b[-4:]:
        return CONTACT_SCORES["phone_last4"]
    if len(a) >= 3 and len(b) >= 3 and a[-3:] == b[-3:]:
        return CONTACT_SCORES["phone_last3"]
    return CONTACT_SCORES["phone_none"]


def score_contact(resume: NormalizedResume, profile: LinkedInProfile) -> SectionScore:
    parts = {
        "email": email_score(resume.email, profile.email),
        "phone": phone_score(resume.phone_number, profile.phone),
    }
    measured = {name: value for name, value in parts.items() if value is not None}
    if not measured:
        return SectionScore(
            section="contact", score=to_percent(NEUTRAL_SCORES["contact"]), weight=SECTION_WEIGHTS["contact"],
            coverage=0.0, rationale="No comparable contact fields on the LinkedIn export",
        )
    fraction = sum(measured.values()) / len(measured)
    return SectionScore(
        section="contact",
        score=to_percent(fraction),
        weight=SECTION_WEIGHTS["contact"],
        coverage=len(measured) / len(parts),
        rationale=", ".join(f"{name} {value:.2f}" for name, value in measured.items()),
    )


# ---------------------------------------------------------------------------
# Skills & summary
# ---------------------------------------------------------------------------

def score_skills(resume: NormalizedResume, profile: LinkedInProfile) -> SectionScore:
    resume_skills = list(resume.skills) + [s for exp in resume.work_experiences for s in exp.skills]
    linkedin_skills = list(profile.skills) + [s for exp in profile.experiences for s in exp.skills]
    if not resume_skills or not linkedin_skills:
        return SectionScore(
            section="skills", score=to_percent(NEUTRAL_SCORES["text"]), weight=SECTION_WEIGHTS["skills"],
            coverage=0.0, rationale="Skills missing on one side; neutral score",
        )

    overlap = set_similarity(resume_skills, linkedin_skills)
    coverage = coverage_ratio(resume_skills, linkedin_skills)
    fraction = SKILLS_WEIGHTS["overlap"] * overlap + SKILLS_WEIGHTS["coverage"] * coverage
    return SectionScore(
        section="skills",
        score=to_percent(fraction),
        weight=SECTION_WEIGHTS["skills"],
        coverage=round(coverage, 4),
        rationale=f"Skill overlap {overlap:.2f}; {coverage:.0%} of résumé skills appear on LinkedIn",
    )


def title_in_headline(target_title: str, headline: str) -> float:
    """Share of target-title tokens present in the headline, or plain similarity if higher."""
    title_tokens = tokenize(target_title, min_length=2)
    if not title_tokens:
        return 0.0
    containment = len(title_tokens & tokenize(headline, min_length=2)) / len(title_tokens)
    return max(containment, token_set_similarity(target_title, headline))


def score_summary(resume: NormalizedResume, profile: LinkedInProfile) -> SectionScore:
    parts, weights, notes = [], [], []
    if normalize_text(resume.summary) and normalize_text(profile.about):
        about_score = token_set_similarity(resume.summary, profile.about)
        parts.append(about_score)
        weights.append(SUMMARY_WEIGHTS["about"])
        notes.append(f"summary vs about {about_score:.2f}")
    if normalize_text(resume.target_title) and normalize_text(profile.headline):
        headline_score = title_in_headline(resume.target_title, profile.headline)
        parts.append(headline_score)
        weights.append(SUMMARY_WEIGHTS["headline"])
        notes.append(f"target title vs headline {headline_score:.2f}")

    if not parts:
        return SectionScore(
            section="summary", score=to_percent(NEUTRAL_SCORES["text"]), weight=SECTION_WEIGHTS["summary"],
            coverage=0.0, rationale="No summary or headline to compare; neutral score",
        )
    return SectionScore(
        section="summary",
        score=to_percent(weighted_average(parts, weights)),
        weight=SECTION_WEIGHTS["summary"],
        coverage=len(parts) / 2,
        rationale="; ".join(notes),
    )


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------

def calculate_overall_score(section_scores: Sequence[SectionScore]) -> int:
    """
    round(Sum(score * weight) / Sum(weight)), clamped to [0, 100].

    Returns 0 when the weights sum to zero.
    """
    total_weight = sum(s.weight for s in section_scores)
    if total_weight <= 0:
        return 0
    overall = round_half_up(sum(s.score * s.weight for s in section_scores) / total_weight)
    return max(0, min(100, overall))


def compute_github_overall_score(project_results: Sequence[ProjectVerification]) -> int:
    """Mean alignment over MATCHED projects only; 0 when none matched."""
    scored = [p.alignment_score for p in project_results if p.status == MatchStatus.MATCHED]
    if not scored:
        return 0
    return max(0, min(100, round_half_up(sum(scored) / len(scored))))


def score_linkedin_profile(
    resume: NormalizedResume, profile: LinkedInProfile, as_of: Optional[date] = None
) -> LinkedInScores:
    """Run every section scorer and aggregate. Deterministic for a fixed ``as_of``."""
    as_of = as_of or date.today()
    experience, experience_matches = score_experience(resume, profile, as_of)
    education, education_matches = score_education(resume, profile)
    section_scores = [
        experience,
        education,
        score_identity(resume, profile),
        score_skills(resume, profile),
        score_summary(resume, profile),
        score_contact(resume, profile),
    ]
    overall = calculate_overall_score(section_scores)
    logger.info(f"Overall LinkedIn verification score: {overall}")
    return LinkedInScores(section_scores, overall, experience_matches, education_matches)
