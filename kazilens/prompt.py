from __future__ import annotations

import json
from typing import Any, Dict, Optional

from kazilens.models import Job, ResumeAnalysis, SessionContext


def build_interviewer_instruction(context: SessionContext) -> str:
    """
    System instruction for the live mock interviewer.
    Built once per session; the live stream keeps it for its whole lifetime.
    """
    background = json.dumps(context.to_dict(), ensure_ascii=False)
    role = context.role or "Professional"
    return f"""You are a strict but fair interviewer at KaziLens AI.
The user's background: {background}.
Conduct a high-stakes mock interview for the role of {role}.
Keep your questions concise. Wait for them to answer.
Provide real-time feedback after they answer a few questions."""


def build_coach_instruction(analysis: Optional[ResumeAnalysis]) -> str:
    background = json.dumps(analysis.to_dict(), ensure_ascii=False) if analysis else "not provided yet"
    return f"""You are a high-level career coach at KaziLens AI.
You have the user's resume analysis: {background}.
Be professional, encouraging, and provide tactical advice for job applications, networking, and salary negotiation.
Give well-reasoned, specific answers."""


def build_resume_prompt(resume_text: str) -> str:
    return f"""Analyze the following resume text and provide a JSON response with structure:
{{
  "score": number (0-100),
  "parsedName": string,
  "parsedRole": string,
  "improvements": string[] (exactly 3 bullet points),
  "skills": string[],
  "summary": string
}}

Resume content: {resume_text}"""


def build_job_search_prompt(query: str, location: str, filters: Dict[str, Any]) -> str:
    location_type = (filters or {}).get("locationType") or ""
    employment_type = (filters or {}).get("employmentType") or ""
    terms = " ".join(t for t in (location_type, employment_type) if t)
    lead = f"Search for {terms} job openings" if terms else "Search for job openings"
    return f"""{lead} for "{query}" in "{location}" or worldwide.
Prioritize listings from LinkedIn and company career pages."""


def build_job_structuring_prompt(search_results: str, count: int = 6) -> str:
    return f"""Based on your search results, create a JSON list of {count} job openings. Include detailed requirements and company details.
Search Results: {search_results}"""


def build_gap_analysis_prompt(analysis: ResumeAnalysis, job: Job) -> str:
    return f"""Perform a detailed gap analysis between this resume and job requirements.
Resume: {json.dumps(analysis.to_dict(), ensure_ascii=False)}
Job: {json.dumps(job.to_dict(), ensure_ascii=False)}"""


def build_company_prompt(company: str) -> str:
    return f"Find office locations and cultural summary for {company}."
