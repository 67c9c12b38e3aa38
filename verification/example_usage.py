"""
Example usage of the résumé verification pipelines.

Run this file to see the system in action (needs OPENAI_API_KEY, and
FIRECRAWL_API_KEY for the GitHub example):
    python -m verification.example_usage
"""

import logging
import os

from verification import (
    VerificationError,
    render_github_report,
    resolve_github_profile_url,
    verify_github_profile,
    verify_linkedin_profile,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# Sample stored résumé document (camelCase, as persisted)
RESUME = {
    "firstName": "Jane",
    "lastName": "Doe",
    "targetJobTitle": "Software Engineer",
    "email": "jane.doe@example.com",
    "phoneNumber": "+1 (555) 010-2030",
    "location": "Berlin, Germany",
    "summary": "Backend engineer building payment and tracking systems in Python.",
    "profiles": {"github": "github.com/janedoe"},
    "workExperiences": [
        {
            "employerName": "Acme Corp",
            "jobTitle": "Software Engineer",
            "location": "Berlin",
            "startedAt": "2020-01",
            "endedAt": "2021-12",
            "achievements": [{"text": "Built the order tracking service in Python and PostgreSQL"}],
            "skills": [{"name": "Python"}, {"name": "PostgreSQL"}],
        }
    ],
    "educations": [
        {
            "institutionName": "Technical University of Berlin",
            "degreeTypeName": "Bachelor of Science",
            "fieldOfStudyName": "Computer Science",
            "graduationAt": "2019-07",
        }
    ],
    "skills": [{"name": "Python"}, {"name": "Docker"}, {"name": "React.js"}],
    "projects": [
        {
            "title": "Task Tracker App",
            "description": "Kanban-style task tracker with a React frontend",
            "skills": [{"name": "React"}, {"name": "Node.js"}],
        }
    ],
}

# Sample LinkedIn PDF export text
LINKEDIN_TEXT = """
Jane Doe
Software Engineer II at Acme Corporation
Berlin, Germany

Experience
Acme Corporation
Software Engineer II
February 2020 - December 2021
Berlin, Germany

Education
Technical University of Berlin
Bachelor of Science, Computer Science 2015 - 2019

Top Skills
Python
PostgreSQL
Docker
"""


def example_linkedin_verification():
    """Example 1: Cross-check against a LinkedIn export."""
    print("\n" + "="*80)
    print("EXAMPLE 1: LinkedIn Verification")
    print("="*80)

    result = verify_linkedin_profile(RESUME, LINKEDIN_TEXT)

    print(f"\n📊 Overall score: {result.overall_score}/100 ({result.scoring_method})")
    for section in result.section_scores:
        bar = "█" * int(section.score / 5)
        print(f"  {section.section.capitalize():12} {section.score:3d}  w={section.weight:.2f} {bar}")
    for match in result.experience_matches:
        print(f"  {match.resume_label} -> {match.linkedin_label or '-'} ({match.score:.2f}, {match.status.value})")
    print(f"\n{result.report_markdown}")


def example_github_verification():
    """Example 2: Verify résumé projects against GitHub repositories."""
    print("\n" + "="*80)
    print("EXAMPLE 2: GitHub Verification")
    print("="*80)

    profile_url = resolve_github_profile_url(RESUME)
    if not profile_url:
        print("No GitHub profile on the résumé")
        return

    result = verify_github_profile(RESUME, profile_url)
    print(render_github_report(result))
    print(f"Run metadata: {result.run_metadata}")


def main():
    """Run all examples."""
    if not os.getenv("OPENAI_API_KEY"):
        print("❌ ERROR: OPENAI_API_KEY environment variable not set")
        print("   Please set it: export OPENAI_API_KEY='sk-...'")
        return

    try:
        example_linkedin_verification()
        if os.getenv("FIRECRAWL_API_KEY"):
            example_github_verification()
        else:
            print("\nSkipping GitHub example: FIRECRAWL_API_KEY not set")
    except VerificationError as e:
        print(f"\n❌ VERIFICATION FAILED: {e.to_dict()}")


if __name__ == "__main__":
    main()
