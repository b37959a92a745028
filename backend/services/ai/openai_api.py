"""
Helper for interacting with the OpenAI API.

Wraps chat completions for idea generation and converts every client
failure into ``OpenAIAPIError``.
"""
import logging

from openai import AsyncOpenAI, OpenAIError

from backend.config import get_settings

__all__ = ["OpenAIError", "OpenAIAPIError", "generate_response"]

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You suggest fun, concrete things for groups of friends and couples to do."


class OpenAIAPIError(RuntimeError):
    """Raised when the OpenAI API cannot be contacted or returns an error."""


async def generate_response(
        prompt: str,
        model: str | None = None,
        timeout: int | None = None,
) -> str:
    """
    Generate a response using OpenAI API.

    Args:
        prompt: Prompt to send to the OpenAI API
        model: OpenAI model to use (default: ``idea_generation_model`` setting)
        timeout: Request timeout in seconds

    Returns:
        The generated string

    Raises:
        OpenAIAPIError: If API key is missing or API call fails
    """
    settings = get_settings()
    if not settings.openai_api_key:
        raise OpenAIAPIError("OPENAI_API_KEY environment variable must be set")

    model = model or settings.idea_generation_model
    try:
        client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=timeout or settings.idea_generation_timeout,
        )

        response = await client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ])

        if not response.choices:
            raise OpenAIAPIError("OpenAI API returned no choices")

        choice = response.choices[0]
        if not choice.message:
            raise OpenAIAPIError("OpenAI API returned choice without message")

        output_text = choice.message.content
        if not output_text or not output_text.strip():
            logger.warning(f"OpenAI returned empty content. Model: {model}, "
                           f"Finish reason: {choice.finish_reason}")
            raise OpenAIAPIError("OpenAI API returned empty response content")

        return output_text.strip()

    except OpenAIError as exc:
        raise OpenAIAPIError(f"OpenAI API error: {exc}") from exc
