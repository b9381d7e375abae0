"""Gemini career coach chat."""

import logging
from typing import Optional

from kazilens.coaches.base_coach import BaseCoach
from kazilens.config import Config
from kazilens.errors import ProviderError, QuotaExceeded
from kazilens.models import ResumeAnalysis
from kazilens.prompt import build_coach_instruction
from kazilens.providers import gemini
from kazilens.retry import call_with_retry

logger = logging.getLogger(__name__)


class GeminiCoach(BaseCoach):
    """Google Gemini-based career coach."""

    def __init__(self, analysis: Optional[ResumeAnalysis] = None, model: Optional[str] = None):
        """Initialize Gemini coach.

        Args:
            analysis: Resume analysis used to build the system instruction
            model: Model name to use (defaults to Config.GEMINI_COACH_MODEL)
        """
        super().__init__(analysis)
        self.model_name = model or Config.GEMINI_COACH_MODEL
        self.system_instruction = build_coach_instruction(analysis)

    async def chat(self, user_message: str) -> str:
        self._add_to_history("user", user_message)
        contents = self._build_contents()
        failed = False

        try:
            assistant_text = await call_with_retry(lambda: gemini.generate_content(
                contents,
                model=self.model_name,
                system_instruction=self.system_instruction,
            ))
            assistant_text = assistant_text.strip()

            # Handle empty response
            if not assistant_text:
                assistant_text = "I'm sorry, I couldn't process that."
                failed = True

        except QuotaExceeded as e:
            assistant_text = "Error: Rate limit exceeded. Please wait a moment and try again."
            failed = True
            logger.warning("Coach quota exceeded: %s", e)
        except ProviderError as e:
            assistant_text = "Error connecting to coach. Please try again."
            failed = True
            logger.error("Coach API error: %s", e)

        self._add_to_history("model", assistant_text, failed=failed)
        return assistant_text
