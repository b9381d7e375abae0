"""Career coach chat."""

from typing import Optional
from kazilens.coaches.base_coach import BaseCoach
from kazilens.models import ResumeAnalysis


def create_coach(analysis: Optional[ResumeAnalysis] = None, coach_type: str = "gemini") -> BaseCoach:
    """Factory function to create a coach instance.

    Args:
        analysis: Resume analysis the coach is primed with
        coach_type: Type of coach to create (only "gemini" today)

    Returns:
        BaseCoach instance

    Raises:
        ValueError: If coach_type is not supported
    """
    coach_type = coach_type.lower()

    if coach_type == "gemini":
        from kazilens.coaches.gemini_coach import GeminiCoach
        return GeminiCoach(analysis)
    else:
        raise ValueError(
            f"Unsupported coach type: '{coach_type}'. "
            f"Supported types are: 'gemini'"
        )


__all__ = ["create_coach", "BaseCoach"]
