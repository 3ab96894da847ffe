"""
Azure OpenAI Chat Completion Client
-------------------------------------
Thin wrapper around `openai.AzureOpenAI` with:
  - A bounded per-request timeout
  - Retry with exponential backoff on transient failures (tenacity)
  - LangSmith tracing
  - Token usage logging

Every failure is converted into CompletionFailure so the chat service can
answer with a fallback reply instead of crashing.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from langsmith import traceable
from loguru import logger
from openai import (
    APIConnectionError,
    APITimeoutError,
    AzureOpenAI,
    InternalServerError,
    OpenAIError,
    RateLimitError,
)
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from handbook_rag.config import Settings
from handbook_rag.errors import CompletionFailure

MAX_ATTEMPTS = 3

# APITimeoutError subclasses APIConnectionError
_TRANSIENT_ERRORS = (APIConnectionError, RateLimitError, InternalServerError)


@dataclass
class Completion:
    """The assistant reply plus usage stats from one completion call."""

    content: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


def _log_retry(retry_state) -> None:
    logger.warning(
        f"[Completion] Attempt {retry_state.attempt_number} failed "
        f"({retry_state.outcome.exception()!r}) -- retrying"
    )


class ChatCompleter:
    """
    Sends an assembled message list to an Azure OpenAI chat deployment.

    The SDK's own retries are disabled (max_retries=0); tenacity owns the
    retry policy so attempts are logged in one place.
    """

    def __init__(
        self,
        deployment: str,
        azure_endpoint: str,
        api_key: str,
        api_version: str,
        temperature: float = 1.0,
        max_tokens: int = 4096,
        timeout: float = 60.0,
        client: Optional[Any] = None,
    ) -> None:
        self.deployment = deployment
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client = client or AzureOpenAI(
            api_key=api_key,
            api_version=api_version,
            azure_endpoint=azure_endpoint,
            azure_deployment=deployment,
            timeout=timeout,
            max_retries=0,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatCompleter":
        return cls(
            deployment=settings.azure_deployment,
            azure_endpoint=settings.azure_endpoint,
            api_key=settings.azure_api_key.get_secret_value(),
            api_version=settings.azure_api_version,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            timeout=settings.completion_timeout,
        )

    @traceable(name="chat_completion", run_type="llm")
    def invoke(self, messages: list[dict[str, str]]) -> Completion:
        """
        Run one chat completion.

        Raises:
            CompletionFailure: the call failed after retries, timed out, or
                returned no usable content.
        """
        logger.debug(f"[Completion] {self.deployment} | {len(messages)} messages")

        try:
            response = self._create(messages)
        except APITimeoutError as exc:
            raise CompletionFailure(
                f"Model call timed out after {self.timeout:.0f}s",
                retryable=True,
                timed_out=True,
            ) from exc
        except _TRANSIENT_ERRORS as exc:
            raise CompletionFailure(f"Model call failed: {exc}", retryable=True) from exc
        except OpenAIError as exc:
            raise CompletionFailure(f"Model call failed: {exc}") from exc

        if not response.choices:
            raise CompletionFailure("Model returned no choices")
        content = response.choices[0].message.content
        if content is None:
            raise CompletionFailure("Model returned an empty message")

        usage = response.usage
        prompt_tokens = usage.prompt_tokens if usage else 0
        completion_tokens = usage.completion_tokens if usage else 0
        logger.info(
            f"[Completion] Done | prompt={prompt_tokens} completion={completion_tokens}"
        )
        return Completion(
            content=content,
            model=self.deployment,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
        )

    @retry(
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        stop=stop_after_attempt(MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        before_sleep=_log_retry,
        reraise=True,
    )
    def _create(self, messages: list[dict[str, str]]):
        return self._client.chat.completions.create(
            model=self.deployment,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
