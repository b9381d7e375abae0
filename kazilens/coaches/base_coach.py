"""Abstract base class for the career coach chat."""

from abc import ABC, abstractmethod
from typing import List, Dict, Optional
import time
from kazilens.models import CoachMessage, ResumeAnalysis


class BaseCoach(ABC):
    """Abstract base class for all coach implementations."""

    def __init__(self, analysis: Optional[ResumeAnalysis] = None):
        """Initialize the coach with a greeting as the only history entry.

        Args:
            analysis: Resume analysis the coach tailors its advice to
        """
        self.analysis = analysis
        self.conversation_history: List[CoachMessage] = []
        name = analysis.parsed_name if analysis and analysis.parsed_name else "there"
        self._add_to_history(
            "model",
            f"Hi {name}! I'm your KaziLens Career Coach. How can I help you accelerate your job search today?",
        )

    @abstractmethod
    async def chat(self, user_message: str) -> str:
        """Send message to coach and get response.

        Args:
            user_message: User's message

        Returns:
            Coach's response text
        """
        pass

    def get_history(self) -> List[Dict]:
        """Get conversation history.

        Returns:
            List of message dictionaries with role, text, and timestamp
        """
        return [msg.to_dict() for msg in self.conversation_history]

    def _add_to_history(self, role: str, text: str, failed: bool = False):
        self.conversation_history.append(CoachMessage(
            role=role,
            text=text,
            ts=time.time(),
            failed=failed,
        ))

    def _build_contents(self) -> List[Dict]:
        """Multi-turn contents for the model.

        Skips the opening greeting, failed replies and the user turns they answered.
        """
        history = list(self.conversation_history)
        while history and history[0].role == "model":
            history.pop(0)

        contents = []
        for i, msg in enumerate(history):
            if msg.failed:
                continue
            answered_by = history[i + 1] if i + 1 < len(history) else None
            if answered_by is not None and answered_by.failed:
                continue
            contents.append({"role": msg.role, "parts": [{"text": msg.text}]})
        return contents
