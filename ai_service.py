"""
AI Service Module for Polish It
===============================

Streams chat completions from an OpenAI-compatible endpoint and reports them
through callbacks: one ``on_chunk`` per content delta in arrival order, then
exactly one terminal ``on_complete(usage)`` or ``on_error(exc)``. A
cancellation token aborts the in-flight request; a cancelled request ends
quietly without either terminal callback.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import openai

from config import config, get_model_parameter_requirements
from polish.cancellation import CancellationToken
from polish.completion import StreamCallbacks
from usage_tracking import UsageInfo

logger = logging.getLogger(__name__)

PROVIDER = "openai"

T = TypeVar("T")


class AIRequestError(RuntimeError):
    """Raised when the completion endpoint keeps failing after retry attempts."""

    def __init__(self, provider: str, model: str, attempts: int, max_attempts: int, cause: Exception):
        message = (
            f"AI request failed for {model} via {provider} after "
            f"{attempts}/{max_attempts} attempts: {cause}"
        )
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.attempts = attempts
        self.max_attempts = max_attempts
        self.cause = cause


class ResponseTooLargeError(RuntimeError):
    """Raised when a streamed response exceeds the configured size cap."""

    def __init__(self, model: str, limit: int, received: int):
        super().__init__(
            f"Response from {model} exceeded {limit} characters (received {received}); request aborted"
        )
        self.model = model
        self.limit = limit
        self.received = received


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class AIService:
    """Streaming client for one model on one OpenAI-compatible endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        max_response_chars: Optional[int] = None,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
        client: Optional[Any] = None,
    ):
        """
        Initialize the service.

        Args:
            api_key: API key; defaults to config (required unless ``client`` is given)
            model: Model identifier, opaque to the rest of the pipeline
            base_url: Endpoint base URL
            client: Pre-built ``AsyncOpenAI``-compatible client (tests, proxies)

        Raises:
            ConfigurationError: When no API key is available and no client is given
        """
        self.model = model or config.OPENAI_MODEL
        self.base_url = base_url or config.OPENAI_BASE_URL
        self.timeout = timeout if timeout is not None else config.REQUEST_TIMEOUT
        self.max_retries = max(1, max_retries if max_retries is not None else config.MAX_RETRIES)
        self.retry_delay = max(0.0, retry_delay if retry_delay is not None else config.RETRY_DELAY)
        self.max_response_chars = (
            max_response_chars if max_response_chars is not None else config.MAX_RESPONSE_CHARS
        )
        self.temperature = temperature if temperature is not None else config.TEMPERATURE
        self.max_output_tokens = (
            max_output_tokens if max_output_tokens is not None else config.MAX_OUTPUT_TOKENS
        )

        if client is not None:
            self.openai_client = client
        else:
            self.openai_client = openai.AsyncOpenAI(
                api_key=api_key or config.require_api_key(),
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,  # Stream opening is retried by _execute_with_retries
            )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def improve_text(
        self,
        system_prompt: str,
        user_prompt: str,
        callbacks: StreamCallbacks,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        """
        Stream one improvement request.

        Transport failures are delivered to ``callbacks.on_error`` rather than
        raised. Exceptions raised by ``on_complete`` itself propagate to the
        caller. When ``cancel_token`` fires, the request is aborted and this
        coroutine returns without calling either terminal callback.
        """
        if cancel_token is not None and cancel_token.is_cancelled:
            logger.info("Skipping completion request for %s: run already cancelled", self.model)
            return

        request = asyncio.ensure_future(self._stream_completion(system_prompt, user_prompt, callbacks))
        unregister = cancel_token.register(request.cancel) if cancel_token is not None else None

        try:
            usage = await request
        except asyncio.CancelledError:
            if cancel_token is not None and cancel_token.is_cancelled:
                logger.info("Completion request for %s aborted", self.model)
                return
            raise
        except Exception as exc:
            logger.error("Completion stream for %s failed: %s", self.model, exc)
            await _maybe_await(callbacks.on_error(exc))
            return
        finally:
            if unregister is not None:
                unregister()

        await _maybe_await(callbacks.on_complete(usage))

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    def _build_params(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        """Build chat completion parameters based on model requirements."""
        requirements = get_model_parameter_requirements(self.model)

        params: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "stream": True,
            "stream_options": {"include_usage": True},
            "response_format": {"type": "json_object"},
        }

        if requirements["supports_temperature"]:
            params["temperature"] = self.temperature

        if self.max_output_tokens:
            params[requirements["max_tokens_param"]] = self.max_output_tokens

        return params

    async def _stream_completion(
        self,
        system_prompt: str,
        user_prompt: str,
        callbacks: StreamCallbacks,
    ) -> Optional[UsageInfo]:
        params = self._build_params(system_prompt, user_prompt)

        stream = await self._execute_with_retries(
            lambda: self.openai_client.chat.completions.create(**params),
            action="stream start",
        )

        chunk_count = 0
        received_chars = 0
        usage_obj = None
        try:
            async for chunk in stream:
                # Usage-only chunks arrive with an empty choices list
                if chunk.choices:
                    content_piece = chunk.choices[0].delta.content
                    if content_piece:
                        received_chars += len(content_piece)
                        if self.max_response_chars and received_chars > self.max_response_chars:
                            raise ResponseTooLargeError(self.model, self.max_response_chars, received_chars)
                        chunk_count += 1
                        await _maybe_await(callbacks.on_chunk(content_piece))
                if getattr(chunk, "usage", None):
                    usage_obj = chunk.usage
        finally:
            close = getattr(stream, "close", None)
            if callable(close):
                await _maybe_await(close())

        logger.debug(
            "Streaming completed for %s - received %d chunks, %d characters",
            self.model,
            chunk_count,
            received_chars,
        )
        return self._normalize_usage(usage_obj)

    # ------------------------------------------------------------------
    # Retries
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_request_id(exc: Exception) -> Optional[str]:
        for attr in ("request_id", "response_id", "id"):
            value = getattr(exc, attr, None)
            if value:
                return str(value)
        return None

    @staticmethod
    def _should_retry_exception(exc: Exception) -> bool:
        # Network and timeout errors are always retriable
        if isinstance(
            exc,
            (asyncio.TimeoutError, openai.APIConnectionError, openai.APITimeoutError, ConnectionError),
        ):
            return True

        # HTTP status codes that indicate transient issues
        status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
        if status in {408, 425, 429, 500, 502, 503, 504}:
            return True

        message = str(exc).lower()
        transient_markers = [
            "timeout",
            "temporarily unavailable",
            "internal server error",
            "rate limit",
            "overloaded",
            "service unavailable",
            "connection reset",
            "connection refused",
        ]
        return any(marker in message for marker in transient_markers)

    async def _execute_with_retries(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        action: str,
    ) -> T:
        last_exception: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                return await operation()
            except Exception as exc:
                last_exception = exc
                should_retry = attempt < self.max_retries and self._should_retry_exception(exc)

                if not should_retry:
                    if attempt > 1:
                        raise AIRequestError(PROVIDER, self.model, attempt, self.max_retries, exc) from exc
                    raise

                request_id = self._extract_request_id(exc)
                suffix = f" (request_id={request_id})" if request_id else ""
                logger.warning(
                    "AI %s failed for %s via %s on attempt %d/%d%s: %s",
                    action,
                    self.model,
                    PROVIDER,
                    attempt,
                    self.max_retries,
                    suffix,
                    exc,
                )

                await asyncio.sleep(self.retry_delay)

        assert last_exception is not None
        raise AIRequestError(PROVIDER, self.model, self.max_retries, self.max_retries, last_exception) from last_exception

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    def _normalize_usage(self, usage_obj: Any) -> Optional[UsageInfo]:
        """Extract token metrics from the provider usage object."""
        if usage_obj is None:
            return None

        def _pluck(obj: Any, *names: str) -> Optional[int]:
            for name in names:
                if isinstance(obj, dict) and name in obj:
                    return obj[name]
                if not isinstance(obj, dict) and hasattr(obj, name):
                    value = getattr(obj, name)
                    if value is not None:
                        return value
            return None

        prompt_tokens = _pluck(usage_obj, "prompt_tokens", "input_tokens") or 0
        completion_tokens = _pluck(usage_obj, "completion_tokens", "output_tokens") or 0
        total_tokens = _pluck(usage_obj, "total_tokens")

        return UsageInfo.from_token_counts(
            self.model,
            prompt_tokens,
            completion_tokens,
            total_tokens,
        )
