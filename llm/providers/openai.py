"""OpenAI provider implementation using structured outputs."""

from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel
from openai import OpenAI
from llm.providers.base import LLMProvider
from llm.prompts.loader import PromptManager
from schemas import CategorySuggestion
from logger import get_logger

logger = get_logger()


# Pydantic models for structured output
class SuggestedCategory(BaseModel):
    """Single category suggestion as returned by the model."""

    category: str
    confidence: float
    reasoning: str


class CategorySuggestionResponse(BaseModel):
    """Full suggestion response."""

    suggestions: List[SuggestedCategory]


class OpenAIProvider(LLMProvider):
    """OpenAI implementation using structured outputs for reliable JSON parsing."""

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key.
            model: Model to use (e.g., "gpt-4o-mini"). If None, uses prompt default.
            timeout: Request timeout in seconds; None keeps the client default.
        """
        if timeout is None:
            self.client = OpenAI(api_key=api_key)
        else:
            self.client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model
        self.prompt_manager = PromptManager()

    def suggest_category(
        self,
        description: str,
        amount: Decimal,
        details: Optional[str] = None,
        existing_category_names: Optional[List[str]] = None,
    ) -> List[CategorySuggestion]:
        """Suggest categories using OpenAI with structured outputs.

        Raises:
            Exception: If OpenAI API call fails.
        """
        logger.info(f"Calling OpenAI for category suggestions: {description!r}")

        if existing_category_names:
            categories_text = "Available Categories: " + ", ".join(
                existing_category_names
            )
        else:
            categories_text = (
                "Suggest appropriate categories as there are none defined yet."
            )

        rendered_prompt = self.prompt_manager.render_prompt(
            "category_suggestion",
            {
                "description": description,
                "amount": amount,
                "details": f"Additional Details: {details}" if details else "",
                "categories": categories_text,
            },
        )

        model = self.model or rendered_prompt["parameters"].get("model", "gpt-4o-mini")
        temperature = rendered_prompt["parameters"].get("temperature", 0.2)
        max_tokens = rendered_prompt["parameters"].get("max_tokens", 800)

        logger.info(
            f"Using model: {model}, prompt version: {rendered_prompt['version']}"
        )

        try:
            response = self.client.beta.chat.completions.parse(
                model=model,
                messages=[
                    {"role": "system", "content": rendered_prompt["system_prompt"]},
                    {"role": "user", "content": rendered_prompt["user_prompt"]},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
                response_format=CategorySuggestionResponse,
            )

            result = response.choices[0].message.parsed

            if result is None:
                logger.warning("OpenAI returned null parsed response")
                return []

            suggestions = [
                CategorySuggestion(
                    category=item.category,
                    confidence=min(1.0, max(0.0, item.confidence)),
                    reasoning=item.reasoning,
                )
                for item in result.suggestions
            ]
            suggestions.sort(key=lambda s: s.confidence, reverse=True)

            logger.info(f"Received {len(suggestions)} suggestion(s) from OpenAI")
            return suggestions

        except Exception as e:
            logger.error(f"OpenAI API error: {e}")
            raise
