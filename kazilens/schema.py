from __future__ import annotations
from typing import Any, Dict, List
import json

from kazilens.errors import ProviderError
from kazilens.models import ApplicationInsight, Job, ResumeAnalysis

EMPLOYMENT_TYPES = ["Full-time", "Part-time", "Contract", "Internship"]
LOCATION_TYPES = ["Remote", "Hybrid", "On-site", "Anywhere"]
INSIGHT_STATUSES = ["Strong Match", "Potential Match", "Gaps Detected"]

RESUME_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "score": {"type": "NUMBER"},
        "parsedName": {"type": "STRING"},
        "parsedRole": {"type": "STRING"},
        "improvements": {"type": "ARRAY", "items": {"type": "STRING"}},
        "skills": {"type": "ARRAY", "items": {"type": "STRING"}},
        "summary": {"type": "STRING"},
    },
    "required": ["score", "parsedName", "parsedRole", "improvements", "skills", "summary"],
}

JOBS_SCHEMA: Dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "id": {"type": "STRING"},
            "title": {"type": "STRING"},
            "company": {"type": "STRING"},
            "location": {"type": "STRING"},
            "salary": {"type": "STRING"},
            "description": {"type": "STRING"},
            "requirements": {"type": "ARRAY", "items": {"type": "STRING"}},
            "employmentType": {"type": "STRING"},
            "locationType": {"type": "STRING"},
            "sourceUrl": {"type": "STRING"},
            "companyDetails": {"type": "STRING"},
            "postedDate": {"type": "STRING"},
        },
    },
}

INSIGHT_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "status": {"type": "STRING"},
        "reasoning": {"type": "STRING"},
        "missingKeywords": {"type": "ARRAY", "items": {"type": "STRING"}},
        "tipsToWin": {"type": "STRING"},
    },
    "required": ["status", "reasoning", "missingKeywords", "tipsToWin"],
}


def try_parse_json(text: str) -> Any:
    """
    Best-effort JSON extraction (handles occasional extra text around JSON).
    """
    if text is None or not text.strip():
        raise ProviderError("Empty model response")
    s = text.strip()

    try:
        return json.loads(s)
    except json.JSONDecodeError:
        pass

    # try to extract first {...last} or [...last]
    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        start = s.find(open_ch)
        end = s.rfind(close_ch)
        if start != -1 and end != -1 and end > start:
            try:
                return json.loads(s[start:end+1])
            except json.JSONDecodeError:
                continue

    raise ProviderError(f"No JSON found in model response: {s[:200]}")


def _str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(x).strip() for x in value if str(x).strip()]


def _pick(value: Any, allowed: List[str], default: str) -> str:
    v = str(value or "").strip().lower()
    for option in allowed:
        if option.lower() == v:
            return option
    return default


def normalize_resume_analysis(obj: Any) -> ResumeAnalysis:
    """
    Ensure a stable schema so callers never depend on model formatting.
    """
    if not isinstance(obj, dict):
        raise ProviderError("Model did not return a JSON object")

    try:
        score = int(round(float(obj.get("score", 0))))
    except (TypeError, ValueError):
        score = 0

    return ResumeAnalysis(
        score=max(0, min(100, score)),
        parsed_name=str(obj.get("parsedName", "")).strip(),
        parsed_role=str(obj.get("parsedRole", "")).strip(),
        improvements=_str_list(obj.get("improvements"))[:3],
        skills=_str_list(obj.get("skills")),
        summary=str(obj.get("summary", "")).strip(),
    )


def normalize_jobs(obj: Any) -> List[Job]:
    if isinstance(obj, dict):
        obj = obj.get("jobs", [])
    if not isinstance(obj, list):
        raise ProviderError("Model did not return a JSON list of jobs")

    jobs: List[Job] = []
    for i, item in enumerate(obj):
        if not isinstance(item, dict):
            continue
        title = str(item.get("title", "")).strip()
        company = str(item.get("company", "")).strip()
        if not title:
            continue
        jobs.append(Job(
            id=str(item.get("id") or f"job-{i + 1}"),
            title=title,
            company=company,
            location=str(item.get("location", "")).strip(),
            salary=str(item.get("salary", "")).strip(),
            description=str(item.get("description", "")).strip(),
            requirements=_str_list(item.get("requirements")),
            employment_type=_pick(item.get("employmentType"), EMPLOYMENT_TYPES, "Full-time"),
            location_type=_pick(item.get("locationType"), LOCATION_TYPES, "On-site"),
            source_url=str(item.get("sourceUrl", "")).strip(),
            company_details=(str(item["companyDetails"]).strip() if item.get("companyDetails") else None),
            posted_date=(str(item["postedDate"]).strip() if item.get("postedDate") else None),
        ))
    return jobs


def normalize_insight(obj: Any) -> ApplicationInsight:
    if not isinstance(obj, dict):
        raise ProviderError("Model did not return a JSON object")

    raw_status = str(obj.get("status", "")).strip()
    status = _pick(raw_status, INSIGHT_STATUSES, "")
    if not status:
        lowered = raw_status.lower()
        if "strong" in lowered:
            status = "Strong Match"
        elif "gap" in lowered:
            status = "Gaps Detected"
        else:
            status = "Potential Match"

    return ApplicationInsight(
        status=status,
        reasoning=str(obj.get("reasoning", "")).strip(),
        missing_keywords=_str_list(obj.get("missingKeywords")),
        tips_to_win=str(obj.get("tipsToWin", "")).strip(),
    )
