from dataclasses import dataclass, field
from typing import List, Optional

from kazilens.models import Job, ResumeAnalysis


@dataclass
class ProfileState:
    resume_text: str = ""
    analysis: Optional[ResumeAnalysis] = None
    last_jobs: List[Job] = field(default_factory=list)
    is_pro: bool = False


STATE = ProfileState()
