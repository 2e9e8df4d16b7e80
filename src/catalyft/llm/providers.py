"""
OpenAI access for the ARIA features.

ARIA only needs plain chat completions (the weekly summary). This module
wraps them with:
- FAST / SMART model routing from settings
- Retry with exponential backoff on rate limits and transient API errors
- Mapping of OpenAI failures onto the LLM* exceptions
- Simple request metrics
"""

from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar
import asyncio
import logging
import threading
import time

from openai import AsyncOpenAI, APIConnectionError, APIError, RateLimitError

from ..config import get_settings
from ..exceptions import (
    LLMError,
    LLMRateLimitError,
    LLMResponseInvalidError,
    LLMServiceUnavailableError,
    LLMTimeoutError,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")


class ModelType(Enum):
    """Model tiers, resolved to model ids through settings."""

    FAST = "fast"
    SMART = "smart"


class RetryConfig:
    """Backoff policy for retryable OpenAI failures."""

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
        retryable_status_codes: Optional[set[int]] = None,
    ) -> None:
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.retryable_status_codes = retryable_status_codes or {429, 500, 502, 503, 504}

    def get_delay(self, attempt: int) -> float:
        return min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)


class LLMMetrics:
    """Counters for completions issued by this process."""

    def __init__(self) -> None:
        self.total_requests = 0
        self.successful_requests = 0
        self.failed_requests = 0
        self.retried_requests = 0
        self.total_tokens_input = 0
        self.total_tokens_output = 0
        self._durations_ms: list[float] = []

    def record_request(
        self,
        success: bool,
        retried: bool = False,
        input_tokens: int = 0,
        output_tokens: int = 0,
        duration_ms: Optional[float] = None,
    ) -> None:
        self.total_requests += 1
        if success:
            self.successful_requests += 1
        else:
            self.failed_requests += 1
        if retried:
            self.retried_requests += 1
        self.total_tokens_input += input_tokens
        self.total_tokens_output += output_tokens
        if duration_ms is not None:
            self._durations_ms.append(duration_ms)
            self._durations_ms = self._durations_ms[-100:]

    @property
    def avg_request_time_ms(self) -> float:
        if not self._durations_ms:
            return 0.0
        return sum(self._durations_ms) / len(self._durations_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "retried_requests": self.retried_requests,
            "total_tokens_input": self.total_tokens_input,
            "total_tokens_output": self.total_tokens_output,
            "avg_request_time_ms": round(self.avg_request_time_ms, 2),
        }


class LLMClient:
    """
    Chat completion client used by ARIA.

    Raises LLMServiceUnavailableError on construction when no OpenAI key is
    configured, so callers can report the feature as unavailable.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        retry_config: Optional[RetryConfig] = None,
        openai_client: Optional[AsyncOpenAI] = None,
    ) -> None:
        settings = get_settings()
        api_key = api_key or settings.openai_api_key

        if openai_client is None and not api_key:
            raise LLMServiceUnavailableError(
                message="OPENAI_API_KEY not configured",
                details={"configuration_missing": "openai_api_key"},
            )

        self.client = openai_client or AsyncOpenAI(api_key=api_key)
        self.model_map = {
            ModelType.FAST: settings.llm_model_fast,
            ModelType.SMART: settings.llm_model_smart,
        }
        self.retry_config = retry_config or RetryConfig()
        self.metrics = LLMMetrics()

    def get_model_name(self, model_type: ModelType = ModelType.SMART) -> str:
        return self.model_map.get(model_type, self.model_map[ModelType.SMART])

    async def _execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str = "LLM request",
    ) -> T:
        """
        Run ``operation`` and retry transient failures.

        Raises:
            LLMRateLimitError: Still throttled after the last retry
            LLMServiceUnavailableError: Connection or 5xx failures after retries
            LLMTimeoutError: The request exceeded its timeout
            LLMError: Any other failure
        """
        retried = False
        max_retries = self.retry_config.max_retries

        for attempt in range(max_retries + 1):
            started = time.monotonic()
            try:
                result = await operation()
            except LLMError:
                self.metrics.record_request(success=False, retried=retried)
                raise
            except RateLimitError as e:
                retried = True
                if attempt >= max_retries:
                    self.metrics.record_request(success=False, retried=True)
                    raise LLMRateLimitError() from e
                delay = self.retry_config.get_delay(attempt)
                logger.warning(
                    f"{operation_name} rate limited. Retry {attempt + 1}/{max_retries} in {delay:.1f}s"
                )
                await asyncio.sleep(delay)
            except APIConnectionError as e:
                retried = True
                if attempt >= max_retries:
                    self.metrics.record_request(success=False, retried=True)
                    raise LLMServiceUnavailableError(
                        message=f"Connection to LLM service failed: {e}",
                    ) from e
                delay = self.retry_config.get_delay(attempt)
                logger.warning(
                    f"{operation_name} connection error. Retry {attempt + 1}/{max_retries} in {delay:.1f}s"
                )
                await asyncio.sleep(delay)
            except APIError as e:
                status = getattr(e, "status_code", None) or 500
                if status not in self.retry_config.retryable_status_codes:
                    self.metrics.record_request(success=False, retried=retried)
                    raise LLMError(
                        message=f"LLM API error: {e}",
                        details={"status_code": status},
                    ) from e
                retried = True
                if attempt >= max_retries:
                    self.metrics.record_request(success=False, retried=True)
                    raise LLMServiceUnavailableError(
                        message=f"LLM API error after retries: {e}",
                        details={"status_code": status},
                    ) from e
                delay = self.retry_config.get_delay(attempt)
                logger.warning(
                    f"{operation_name} API error (status {status}). "
                    f"Retry {attempt + 1}/{max_retries} in {delay:.1f}s"
                )
                await asyncio.sleep(delay)
            except asyncio.TimeoutError as e:
                self.metrics.record_request(success=False, retried=retried)
                raise LLMTimeoutError() from e
            except Exception as e:
                self.metrics.record_request(success=False, retried=retried)
                logger.error(f"Unexpected error in {operation_name}: {e}")
                raise LLMError(message=f"Unexpected LLM error: {e}") from e
            else:
                self.metrics.record_request(
                    success=True,
                    retried=retried,
                    duration_ms=(time.monotonic() - started) * 1000,
                )
                return result

        raise LLMError(message=f"{operation_name} failed after {max_retries} retries")

    async def completion(
        self,
        system: str,
        user: str,
        model: ModelType = ModelType.SMART,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        timeout: Optional[float] = 60.0,
    ) -> str:
        """
        Get a chat completion and return the assistant text.

        Raises:
            LLMResponseInvalidError: The model returned no content
            LLMError: On any other failure
        """
        async def _make_request() -> str:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.get_model_name(model),
                    messages=[
                        {"role": "system", "content": system},
                        {"role": "user", "content": user},
                    ],
                    max_tokens=max_tokens,
                    temperature=temperature,
                ),
                timeout=timeout,
            )
            content = response.choices[0].message.content
            if not content:
                raise LLMResponseInvalidError(message="Empty response from LLM")
            return content

        return await self._execute_with_retry(_make_request, "completion")

    def get_metrics(self) -> Dict[str, Any]:
        return self.metrics.to_dict()


_llm_client: Optional[LLMClient] = None
_llm_client_lock = threading.Lock()


def get_llm_client() -> LLMClient:
    """Get the process-wide LLM client, creating it on first use."""
    global _llm_client
    if _llm_client is None:
        with _llm_client_lock:
            if _llm_client is None:
                _llm_client = LLMClient()
    return _llm_client


def reset_llm_client() -> None:
    """Drop the cached client (tests and settings reloads)."""
    global _llm_client
    with _llm_client_lock:
        _llm_client = None
