"""
Claude API client used as the reasoning service.

Wraps the async Anthropic SDK behind a single ``complete`` call and maps SDK
failures onto a small exception hierarchy so callers can decide which
failures are recoverable.
"""

from typing import Optional

import anthropic
from anthropic import AsyncAnthropic
from loguru import logger

from sift.config import get_settings


class ReasoningServiceError(Exception):
    """Base class for failures of the reasoning service."""

    def __init__(self, message: str, provider: str = "Anthropic"):
        super().__init__(message)
        self.provider = provider


class MissingAPIKeyError(ReasoningServiceError):
    """No API key is configured."""


class InvalidAPIKeyError(ReasoningServiceError):
    """The configured API key was rejected."""


class RateLimitExceededError(ReasoningServiceError):
    """The provider is throttling requests."""


class ServiceUnavailableError(ReasoningServiceError):
    """The provider answered with a server-side error."""


class NetworkError(ReasoningServiceError):
    """The provider could not be reached."""


class InvalidResponseError(ReasoningServiceError):
    """The provider answered but the content is unusable."""


class ClaudeClient:
    """
    Client for single-turn completions against Claude.

    Missing credentials are only reported when a completion is requested, so
    the client can always be constructed.
    """

    PROVIDER = "Anthropic"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ):
        """
        Initialize the Claude client.

        Args:
            api_key: Optional Anthropic API key (uses settings if not provided)
            model: Optional model name (uses settings if not provided)
            max_tokens: Optional response token cap (uses settings if not provided)
        """
        settings = get_settings()
        self.api_key = api_key or settings.anthropic_api_key
        self.model = model or settings.llm_model
        self.max_tokens = max_tokens or settings.llm_max_tokens
        self.client: Optional[AsyncAnthropic] = (
            AsyncAnthropic(api_key=self.api_key) if self.api_key else None
        )

        logger.info(f"Initialized Claude client with model: {self.model}")

    async def complete(
        self, user_prompt: str, system_prompt: str, temperature: float = 0.7
    ) -> str:
        """
        Send one user prompt and return the text of Claude's answer.

        Args:
            user_prompt: The user message
            system_prompt: Instructions for the model
            temperature: Sampling temperature

        Returns:
            Concatenated text blocks of the response

        Raises:
            ReasoningServiceError: A subclass describing what went wrong
        """
        if self.client is None:
            raise MissingAPIKeyError(
                f"Please set your {self.PROVIDER} API key (ANTHROPIC_API_KEY)",
                provider=self.PROVIDER,
            )

        logger.debug(f"Calling Claude ({self.model}, temperature={temperature})")

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system_prompt,
                temperature=temperature,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.AuthenticationError as e:
            raise InvalidAPIKeyError(
                f"Invalid {self.PROVIDER} API key. Please check your credentials.",
                provider=self.PROVIDER,
            ) from e
        except anthropic.RateLimitError as e:
            raise RateLimitExceededError(
                f"{self.PROVIDER} rate limit exceeded. Please try again later.",
                provider=self.PROVIDER,
            ) from e
        except anthropic.APIConnectionError as e:
            raise NetworkError(f"Network error: {e}", provider=self.PROVIDER) from e
        except anthropic.APIStatusError as e:
            if e.status_code >= 500:
                raise ServiceUnavailableError(
                    f"{self.PROVIDER} service is currently unavailable",
                    provider=self.PROVIDER,
                ) from e
            raise InvalidResponseError(
                f"Request rejected with status {e.status_code}: {e.message}",
                provider=self.PROVIDER,
            ) from e

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.debug(
                f"API call complete. Tokens: input={usage.input_tokens}, "
                f"output={usage.output_tokens}"
            )

        text = "".join(
            block.text for block in response.content if block.type == "text"
        ).strip()
        if not text:
            raise InvalidResponseError(
                "Empty response from Claude", provider=self.PROVIDER
            )
        return text
