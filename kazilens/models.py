"""Data models for KaziLens."""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
import time


class SessionState(str, Enum):
    """Lifecycle of a live interview session."""
    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass
class ResumeAnalysis:
    """Structured result of a resume analysis."""
    score: int
    parsed_name: str
    parsed_role: str
    improvements: List[str] = field(default_factory=list)
    skills: List[str] = field(default_factory=list)
    summary: str = ""

    def to_dict(self):
        return {
            "score": self.score,
            "parsedName": self.parsed_name,
            "parsedRole": self.parsed_role,
            "improvements": list(self.improvements),
            "skills": list(self.skills),
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResumeAnalysis":
        return cls(
            score=int(data.get("score", 0)),
            parsed_name=str(data.get("parsedName", "")),
            parsed_role=str(data.get("parsedRole", "")),
            improvements=list(data.get("improvements") or []),
            skills=list(data.get("skills") or []),
            summary=str(data.get("summary", "")),
        )


@dataclass
class Job:
    """A job posting returned by the job search."""
    id: str
    title: str
    company: str
    location: str = ""
    salary: str = ""
    description: str = ""
    requirements: List[str] = field(default_factory=list)
    employment_type: str = "Full-time"
    location_type: str = "On-site"
    source_url: str = ""
    match_score: Optional[int] = None
    company_details: Optional[str] = None
    posted_date: Optional[str] = None

    def to_dict(self):
        out = {
            "id": self.id,
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "salary": self.salary,
            "description": self.description,
            "requirements": list(self.requirements),
            "employmentType": self.employment_type,
            "locationType": self.location_type,
            "sourceUrl": self.source_url,
        }
        if self.match_score is not None:
            out["matchScore"] = self.match_score
        if self.company_details is not None:
            out["companyDetails"] = self.company_details
        if self.posted_date is not None:
            out["postedDate"] = self.posted_date
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        match_score = data.get("matchScore")
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            company=str(data.get("company", "")),
            location=str(data.get("location", "")),
            salary=str(data.get("salary", "")),
            description=str(data.get("description", "")),
            requirements=list(data.get("requirements") or []),
            employment_type=str(data.get("employmentType", "Full-time")),
            location_type=str(data.get("locationType", "On-site")),
            source_url=str(data.get("sourceUrl", "")),
            match_score=int(match_score) if match_score is not None else None,
            company_details=data.get("companyDetails"),
            posted_date=data.get("postedDate"),
        )


@dataclass
class ApplicationInsight:
    """Gap analysis between a resume and a job."""
    status: Literal["Strong Match", "Potential Match", "Gaps Detected"]
    reasoning: str
    missing_keywords: List[str] = field(default_factory=list)
    tips_to_win: str = ""

    def to_dict(self):
        return {
            "status": self.status,
            "reasoning": self.reasoning,
            "missingKeywords": list(self.missing_keywords),
            "tipsToWin": self.tips_to_win,
        }


@dataclass
class SessionContext:
    """Resume-derived context the live interviewer is primed with."""
    role: str = "Professional"
    name: str = ""
    skills: List[str] = field(default_factory=list)
    summary: str = ""
    improvements: List[str] = field(default_factory=list)
    score: Optional[int] = None

    @classmethod
    def from_analysis(cls, analysis: Optional[ResumeAnalysis]) -> "SessionContext":
        if analysis is None:
            return cls()
        return cls(
            role=analysis.parsed_role or "Professional",
            name=analysis.parsed_name,
            skills=list(analysis.skills),
            summary=analysis.summary,
            improvements=list(analysis.improvements),
            score=analysis.score,
        )

    def to_dict(self):
        return asdict(self)


@dataclass
class TranscriptLine:
    """One line of the live session's rolling transcript."""
    speaker: Literal["You", "Coach"]
    text: str
    ts: float = field(default_factory=time.time)

    def __str__(self):
        return f"{self.speaker}: {self.text}"

    def to_dict(self):
        return {
            "speaker": self.speaker,
            "text": self.text,
            "ts": self.ts,
        }


@dataclass
class CoachMessage:
    """A message in the career coach chat."""
    role: Literal["user", "model"]
    text: str
    ts: float  # Unix timestamp
    failed: bool = False  # fallback reply shown to the user, never sent back to the model

    def to_dict(self):
        return {
            "role": self.role,
            "text": self.text,
            "ts": self.ts
        }
