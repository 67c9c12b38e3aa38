"""
Configuration for the résumé verification pipelines.
Adjust weights and parameters here.
"""

# LinkedIn section weights (must sum to 1.0)
SECTION_WEIGHTS = {
    "experience": 0.35,
    "education": 0.25,
    "identity": 0.15,
    "skills": 0.10,
    "summary": 0.10,
    "contact": 0.05,
}

# Experience composite weights (title + company = 0.58)
EXPERIENCE_MATCH_WEIGHTS = {
    "company": 0.30,
    "title": 0.28,
    "location": 0.04,
    "start_date": 0.08,
    "end_date": 0.08,
    "duration": 0.07,
    "skills": 0.08,
    "achievements": 0.07,
}

# Education composite weights
EDUCATION_MATCH_WEIGHTS = {
    "institution": 0.45,
    "degree": 0.25,
    "field_of_study": 0.15,
    "graduation": 0.15,
}

# Best-match coverage
COVERAGE_THRESHOLD = 0.55
COVERAGE_BLEND = 0.30

# Recency weighting for experiences
RECENCY_HALF_LIFE_MONTHS = 36
RECENCY_FLOOR = 0.1
RECENCY_UNKNOWN = 0.5

# Neutral values used when a comparison cannot be measured
NEUTRAL_SCORES = {
    "both_dates_missing": 0.3,
    "one_date_missing": 0.25,
    "duration": 0.35,
    "text": 0.3,
    "contact": 0.5,
}

# Single-comparison date closeness: (max month gap, score); anything larger scores "beyond"
DATE_CLOSENESS_STEPS = [
    (0, 1.0),
    (1, 0.95),
    (3, 0.8),
    (6, 0.5),
]
DATE_CLOSENESS_BEYOND = 0.1

# Composite contexts use 1 - months / horizon
SMOOTH_DATE_HORIZON_MONTHS = 24

# Contact scoring
CONTACT_SCORES = {
    "email_exact": 1.0,
    "email_same_domain_base": 0.4,
    "email_same_domain_fuzzy": 0.4,
    "email_local_only": 0.3,
    "phone_full": 1.0,
    "phone_last4": 0.7,
    "phone_last3": 0.4,
    "phone_none": 0.0,
}
MIN_PHONE_DIGITS_FOR_FULL_MATCH = 7

# Identity scoring
IDENTITY_WEIGHTS = {
    "name": 0.85,
    "location": 0.15,
}

# Skills scoring
SKILLS_WEIGHTS = {
    "overlap": 0.5,
    "coverage": 0.5,
}

# Summary scoring
SUMMARY_WEIGHTS = {
    "about": 0.6,
    "headline": 0.4,
}

# GitHub project matching
MIN_PROJECT_MATCH_CONFIDENCE = 0.5

# LLM configuration
LLM_CONFIG = {
    "temperature": 0,  # For maximum consistency
    "model": "gpt-4.1-mini",
    "max_tokens": 10000,
    "timeout_seconds": 60,
    "max_retries": 3,
}

# Backoff for retryable provider errors
RETRY_CONFIG = {
    "base_delay_seconds": 0.5,
    "max_delay_seconds": 5.0,
    "factor": 2,
    "randomize": True,
}

# Scraping and prompt size limits
SCRAPE_CONFIG = {
    "profile_max_chars": 15000,
    "repo_max_chars": 10000,
    "timeout_seconds": 60,
    "max_concurrent_verifications": 8,
}

SCORING_METHOD = "deterministic_best_match_v7"

# Skill normalization mappings
SKILL_NORMALIZATIONS = {
    "react.js": "React",
    "reactjs": "React",
    "react js": "React",
    "node.js": "Node.js",
    "nodejs": "Node.js",
    "node": "Node.js",
    "sql server": "SQL",
    "mysql": "SQL",
    "postgresql": "SQL",
    "postgres": "SQL",
    "javascript": "JavaScript",
    "js": "JavaScript",
    "typescript": "TypeScript",
    "ts": "TypeScript",
    "python3": "Python",
    "c++": "C++",
    "c#": "C#",
    "aws": "AWS",
    "amazon web services": "AWS",
    "azure": "Azure",
    "microsoft azure": "Azure",
    "google cloud": "GCP",
    "gcp": "GCP",
    "k8s": "Kubernetes",
    "golang": "Go",
}
