"""Markdown reports for verification results."""

from typing import List, Sequence

from .models import EntryMatch, GithubVerificationResult, MatchStatus, SectionScore, VerificationResult


def _cell(value: object) -> str:
    return str(value).replace("|", "\\|").replace("\n", " ").strip() or "-"


def _section_table(section_scores: Sequence[SectionScore]) -> List[str]:
    lines = ["| Section | Score | Weight | Coverage | Rationale |", "| --- | --- | --- | --- | --- |"]
    for s in section_scores:
        lines.append(
            f"| {_cell(s.section.title())} | {s.score} | {s.weight:.2f} | {s.coverage:.0%} | {_cell(s.rationale)} |"
        )
    return lines


def _match_table(title: str, matches: Sequence[EntryMatch]) -> List[str]:
    if not matches:
        return []
    lines = [f"### {title}", "", "| Résumé entry | Best LinkedIn entry | Score | Status |", "| --- | --- | --- | --- |"]
    for m in matches:
        status = "✅ Matched" if m.status == MatchStatus.MATCHED else "❌ Not found"
        lines.append(f"| {_cell(m.resume_label)} | {_cell(m.linkedin_label)} | {m.score:.2f} | {status} |")
    lines.append("")
    return lines


def render_linkedin_report(result: VerificationResult) -> str:
    """Overall score, section table, per-entry match tables and findings."""
    profile = result.linkedin_profile
    lines = [
        "## LinkedIn Verification Report",
        "",
        f"**Profile:** {profile.full_name or 'Unknown'}" + (f" ({profile.headline})" if profile.headline else ""),
        "",
        f"**Overall score:** {result.overall_score}/100",
        "",
        f"_Scoring method: {result.scoring_method}_",
        "",
        "### Section scores",
        "",
    ]
    lines += _section_table(result.section_scores)
    lines.append("")
    lines += _match_table("Experience matches", result.experience_matches)
    lines += _match_table("Education matches", result.education_matches)

    if result.findings:
        lines += ["### Findings", ""] + [f"- {finding}" for finding in result.findings] + [""]
    if result.resume_assertions:
        lines += ["### Résumé assertions", ""] + [f"- {item}" for item in result.resume_assertions] + [""]
    return "\n".join(lines).rstrip() + "\n"


def render_github_report(result: GithubVerificationResult) -> str:
    """Project table with status, alignment and risk flags."""
    lines = [
        "## GitHub Verification Report",
        "",
        f"**Profile:** {result.github_profile_url}",
        "",
        f"**Overall score:** {result.overall_score}/100",
        "",
        "| Project | Repository | Status | Confidence | Alignment | Risk flags |",
        "| --- | --- | --- | --- | --- | --- |",
    ]
    for p in result.project_results:
        repo = f"[{_cell(p.repo_name)}]({p.repo_url})" if p.repo_url else _cell(p.repo_name)
        lines.append(
            f"| {_cell(p.project_title)} | {repo} | {p.status.value} | {p.match_confidence:.2f} | "
            f"{p.alignment_score} | {_cell('; '.join(p.risk_flags))} |"
        )
    if not result.project_results:
        lines.append("| - | - | - | - | - | No résumé projects to verify |")

    details = [p for p in result.project_results if p.supported_claims or p.missing_claims]
    for p in details:
        lines += ["", f"### {p.project_title}", ""]
        if p.repo_summary:
            lines += [p.repo_summary, ""]
        lines += [f"- ✅ {claim}" for claim in p.supported_claims]
        lines += [f"- ❌ {claim}" for claim in p.missing_claims]
    return "\n".join(lines).rstrip() + "\n"
