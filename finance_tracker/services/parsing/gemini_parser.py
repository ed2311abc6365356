"""
Natural-language transaction parsing with Gemini.

DESIGN DECISION: The model is a TRANSLATOR, not a bookkeeper.
It turns "lunch 50k food" into a proposal of amount, name, category
and type. It never writes anything; the proposal is validated against
the real category list before the store sees it.

Failure modes are kept apart:
- The model answered but the answer is unusable -> None
- The model could not be reached after retries -> ParsingError
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Optional

import google.generativeai as genai
import structlog
from google.api_core.exceptions import GoogleAPIError
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finance_tracker.config import get_settings
from finance_tracker.models.finance import ParsedTransaction


logger = structlog.get_logger(__name__)


class ParsingError(Exception):
    """The parsing service could not be reached."""
    pass


class TextParsingInterface(ABC):
    """Anything that turns free text into a transaction proposal."""

    @abstractmethod
    async def parse(
        self,
        text: str,
        expense_categories: list[str],
        income_categories: list[str],
    ) -> Optional[ParsedTransaction]:
        """
        Propose a transaction for `text`.

        Returns None when the text cannot be understood.
        Raises ParsingError when the service itself fails.
        """
        pass


def build_prompt(
    text: str,
    expense_categories: list[str],
    income_categories: list[str],
) -> str:
    """Prompt listing both category sets so the model can pick the type too."""
    expense_list = ", ".join(expense_categories) or "(none)"
    income_list = ", ".join(income_categories) or "(none)"
    return f"""You turn short notes into entries for a personal finance app.

Note: "{text}"

Expense categories: {expense_list}
Income categories: {income_list}

Rules:
- "type" is "income" if the note describes money received, otherwise "expense"
- "category" MUST be copied exactly from the list that matches "type"
- "amount" is a plain number; expand shorthand like 50k to 50000 and 1.5jt to 1500000
- "name" is a short description of the item, without the amount

Respond with ONLY a JSON object in this exact format:
{{"amount": 50000, "name": "lunch", "category": "Food", "type": "expense"}}"""


def extract_json(text: str) -> Optional[dict[str, Any]]:
    """Pull the first {...} block out of a model response."""
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        return None
    try:
        data = json.loads(text[start:end])
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


class GeminiTextParser(TextParsingInterface):
    """
    Gemini-backed parser.

    A ready-made model object can be injected (tests use a fake);
    otherwise one is configured from GeminiSettings.
    """

    def __init__(self, model: Any = None):
        if model is None:
            model = self._configure_genai()
        self._model = model

    @staticmethod
    def _configure_genai() -> Any:
        """Configure Google Generative AI."""
        settings = get_settings().gemini
        genai.configure(api_key=settings.api_key)
        return genai.GenerativeModel(
            model_name=settings.model_name,
            generation_config={
                "temperature": settings.temperature,
                "max_output_tokens": settings.max_tokens,
            }
        )

    @retry(
        retry=retry_if_exception_type(GoogleAPIError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    async def _generate(self, prompt: str) -> str:
        response = await self._model.generate_content_async(prompt)
        return response.text or ""

    async def parse(
        self,
        text: str,
        expense_categories: list[str],
        income_categories: list[str],
    ) -> Optional[ParsedTransaction]:
        prompt = build_prompt(text, expense_categories, income_categories)

        try:
            raw = await self._generate(prompt)
        except GoogleAPIError as e:
            logger.error("gemini_request_failed", error=str(e))
            raise ParsingError(f"Gemini request failed: {e}") from e
        except ValueError as e:
            # response.text raises ValueError when the answer was blocked
            logger.warning("gemini_response_unreadable", error=str(e))
            return None

        data = extract_json(raw.strip())
        if data is None:
            logger.warning("gemini_response_not_json", response=raw[:200])
            return None

        try:
            parsed = ParsedTransaction.model_validate(data)
        except ValidationError as e:
            logger.warning("gemini_response_invalid", errors=e.errors(), response=raw[:200])
            return None

        logger.debug("text_parsed", parsed=parsed.model_dump(mode="json"))
        return parsed
