"""
Unit tests for résumé normalization, record coercion and GitHub URL handling.
"""

import unittest

from pydantic import ValidationError

from verification.errors import InvalidProfileUrlError, RunFatalError
from verification.models import LinkedInExperience, NormalizedResume, WorkExperience
from verification.normalization import (
    build_repo_url,
    normalize_github_profile_url,
    normalize_resume,
    resolve_github_profile_url,
)

STORED_RESUME = {
    "firstName": "Jane",
    "lastName": "Doe",
    "targetJobTitle": "Backend Engineer",
    "phoneNumber": "+1 555 010 2030",
    "location": {"city": "Berlin", "country": "Germany"},
    "summary": {"text": "Backend engineer"},
    "profiles": {"github": "github.com/janedoe", "linkedin": None},
    "workExperiences": [
        {
            "employerName": "Acme Corp",
            "jobTitle": "Software Engineer",
            "startedAt": "Jan 2020",
            "endedAt": None,
            "isCurrentPosition": True,
            "achievements": [{"text": "Shipped billing"}, {"text": ""}],
            "skills": [{"name": "Python"}],
        }
    ],
    "educations": [{"institutionName": "TU Berlin", "graduationAt": "2019"}],
    "skills": [{"name": "Python"}, {"name": "Docker"}],
    "skillsCategories": [{"name": "Cloud", "skills": [{"name": "AWS"}, {"name": "python"}]}],
    "projects": [{"title": None, "description": "Untitled side project"}],
}


class TestNormalizeResume(unittest.TestCase):

    def test_camel_case_document(self):
        resume = normalize_resume(STORED_RESUME)
        self.assertEqual(resume.full_name, "Jane Doe")
        self.assertEqual(resume.target_title, "Backend Engineer")
        self.assertEqual(resume.location, "Berlin, Germany")
        self.assertEqual(resume.summary, "Backend engineer")
        self.assertEqual(resume.profiles.github, "github.com/janedoe")
        self.assertEqual(resume.profiles.linkedin, "")

        experience = resume.work_experiences[0]
        self.assertEqual(experience.employer_name, "Acme Corp")
        self.assertEqual(experience.started_at, "2020-01-01")
        self.assertIsNone(experience.ended_at)
        self.assertTrue(experience.is_current_position)
        self.assertEqual(experience.achievements, ["Shipped billing"])
        self.assertEqual(experience.skills, ["Python"])

        self.assertEqual(resume.educations[0].graduation_at, "2019-01-01")
        self.assertEqual(resume.skills, ["Python", "Docker", "AWS"])
        self.assertEqual(resume.projects[0].title, "Untitled Project")

    def test_snake_case_document(self):
        resume = normalize_resume({
            "first_name": "Jane",
            "resume_name": "Data Engineer",
            "work_experiences": [{"company_name": "Globex", "title": "Analyst", "start_date": "2019-03"}],
        })
        self.assertEqual(resume.target_title, "Data Engineer")
        self.assertEqual(resume.work_experiences[0].employer_name, "Globex")
        self.assertEqual(resume.work_experiences[0].started_at, "2019-03-01")

    def test_empty_input(self):
        self.assertEqual(normalize_resume(None), NormalizedResume())
        self.assertEqual(normalize_resume({}), NormalizedResume())

    def test_normalized_resume_passes_through(self):
        resume = NormalizedResume(first_name="Jane")
        self.assertIs(normalize_resume(resume), resume)

    def test_non_list_collections_are_empty(self):
        resume = normalize_resume({
            "firstName": "Jane",
            "workExperiences": True,
            "educations": 5,
            "projects": 1,
            "certifications": 2.5,
            "skillsCategories": True,
        })
        self.assertEqual(resume.first_name, "Jane")
        self.assertEqual(resume.work_experiences, [])
        self.assertEqual(resume.educations, [])
        self.assertEqual(resume.projects, [])
        self.assertEqual(resume.certifications, [])
        self.assertEqual(resume.skills, [])

    def test_current_position_flag_from_strings(self):
        for raw, expected in (("false", False), ("False ", False), ("0", False), ("", False),
                              ("true", True), ("Yes", True), ("1", True), (1, True), (None, False)):
            resume = normalize_resume({"workExperiences": [{"employerName": "Acme", "isCurrentPosition": raw}]})
            self.assertIs(resume.work_experiences[0].is_current_position, expected, raw)


class TestRecords(unittest.TestCase):
    """Shared record behaviour: null coercion, closed shapes, camelCase output."""

    def test_null_becomes_default(self):
        experience = WorkExperience.model_validate({"employerName": None, "achievements": None})
        self.assertEqual(experience.employer_name, "")
        self.assertEqual(experience.achievements, [])

    def test_unknown_key_rejected(self):
        with self.assertRaises(ValidationError):
            LinkedInExperience.model_validate({"title": "Engineer", "seniority": "senior"})

    def test_dates_normalized_on_input(self):
        experience = LinkedInExperience(started_at="February 2020", ended_at="Present")
        self.assertEqual(experience.started_at, "2020-02-01")
        self.assertIsNone(experience.ended_at)

    def test_to_dict_uses_camel_case(self):
        data = WorkExperience(employer_name="Acme", started_at="2020").to_dict()
        self.assertEqual(data["employerName"], "Acme")
        self.assertEqual(data["startedAt"], "2020-01-01")
        self.assertNotIn("employer_name", data)

    def test_records_are_frozen(self):
        experience = WorkExperience(employer_name="Acme")
        with self.assertRaises(ValidationError):
            experience.employer_name = "Globex"


class TestGithubProfileUrl(unittest.TestCase):

    def test_variants_resolve_to_repositories_tab(self):
        for raw in (
            "alice",
            "@alice",
            "github.com/alice",
            "https://github.com/alice",
            "http://www.github.com/alice/",
            "https://github.com/alice?tab=stars",
            "alice/repositories",
            "https://github.com/alice/some-repo#readme",
        ):
            ref = normalize_github_profile_url(raw)
            self.assertEqual(ref.profile_url, "https://github.com/alice?tab=repositories", raw)
            self.assertEqual(ref.username, "alice")

    def test_invalid_urls(self):
        for raw in (None, "", "   ", "https://github.com", "-alice", "a" * 45):
            with self.assertRaises(InvalidProfileUrlError):
                normalize_github_profile_url(raw)

    def test_invalid_url_is_run_fatal(self):
        with self.assertRaises(RunFatalError) as ctx:
            normalize_github_profile_url("")
        self.assertEqual(ctx.exception.to_dict()["kind"], "invalid_input")

    def test_build_repo_url(self):
        self.assertEqual(build_repo_url("alice", "tracker"), "https://github.com/alice/tracker")
        self.assertEqual(
            build_repo_url("alice", "tracker", "https://github.com/alice/Tracker"),
            "https://github.com/alice/Tracker",
        )
        self.assertEqual(build_repo_url("alice", "tracker", "https://gitlab.com/x"), "https://github.com/alice/tracker")
        self.assertEqual(build_repo_url("alice", ""), "")

    def test_resolve_profile_url_priority(self):
        self.assertEqual(resolve_github_profile_url(STORED_RESUME, "github.com/other"), "github.com/other")
        self.assertEqual(resolve_github_profile_url(STORED_RESUME), "github.com/janedoe")
        links_only = {"links": ["https://janedoe.dev", {"url": "https://GitHub.com/jd"}]}
        self.assertEqual(resolve_github_profile_url(links_only), "https://GitHub.com/jd")
        self.assertIsNone(resolve_github_profile_url({"firstName": "Jane"}))


if __name__ == "__main__":
    unittest.main()
