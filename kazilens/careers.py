"""
Batch AI calls behind the dashboard and job board.

Each call is a single request -> structured JSON response against generateContent,
wrapped in call_with_retry so 429s back off before surfacing as QuotaExceeded.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from kazilens.config import Config
from kazilens.models import ApplicationInsight, Job, ResumeAnalysis
from kazilens.prompt import (
    build_company_prompt,
    build_gap_analysis_prompt,
    build_job_search_prompt,
    build_job_structuring_prompt,
    build_resume_prompt,
)
from kazilens.providers import gemini
from kazilens.retry import call_with_retry
from kazilens.schema import (
    INSIGHT_SCHEMA,
    JOBS_SCHEMA,
    RESUME_SCHEMA,
    normalize_insight,
    normalize_jobs,
    normalize_resume_analysis,
    try_parse_json,
)

logger = logging.getLogger(__name__)

JOB_RESULTS = 6


async def analyze_resume(resume_text: str) -> ResumeAnalysis:
    async def _call():
        text = await gemini.generate_content(
            build_resume_prompt(resume_text),
            model=Config.GEMINI_ANALYSIS_MODEL,
            response_schema=RESUME_SCHEMA,
        )
        return normalize_resume_analysis(try_parse_json(text))

    analysis = await call_with_retry(_call)
    logger.info("Resume analyzed: role=%s score=%d", analysis.parsed_role, analysis.score)
    return analysis


async def fetch_jobs(query: str, location: str, filters: Optional[Dict[str, Any]] = None) -> List[Job]:
    """Grounded search first, then a second call to shape the results into postings."""
    async def _call():
        search_text = await gemini.generate_content(
            build_job_search_prompt(query, location, filters or {}),
            model=Config.GEMINI_FAST_MODEL,
            tools=[{"google_search": {}}],
        )
        structured = await gemini.generate_content(
            build_job_structuring_prompt(search_text, JOB_RESULTS),
            model=Config.GEMINI_FAST_MODEL,
            response_schema=JOBS_SCHEMA,
        )
        return normalize_jobs(try_parse_json(structured))

    jobs = await call_with_retry(_call)
    logger.info("Job search '%s' in '%s': %d result(s)", query, location, len(jobs))
    return jobs


async def get_application_insights(analysis: ResumeAnalysis, job: Job) -> ApplicationInsight:
    async def _call():
        text = await gemini.generate_content(
            build_gap_analysis_prompt(analysis, job),
            model=Config.GEMINI_FAST_MODEL,
            response_schema=INSIGHT_SCHEMA,
        )
        return normalize_insight(try_parse_json(text))

    return await call_with_retry(_call)


async def get_company_location(company: str) -> str:
    async def _call():
        return await gemini.generate_content(
            build_company_prompt(company),
            model=Config.GEMINI_MAPS_MODEL,
            tools=[{"google_maps": {}}],
        )

    return (await call_with_retry(_call)).strip()
