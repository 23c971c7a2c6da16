"""Client for the external text-generation engine.

The engine receives the compiled prompt list and evaluates it in list
order. It is treated as a black box: this module only ships the payload and
reads back the generated content.
"""
from abc import ABC, abstractmethod
from typing import Optional

import httpx
import structlog

from flowbuilder.config import get_settings
from flowbuilder.errors import ExecutionError
from flowbuilder.models.prompt import GenerationResult, PromptList

logger = structlog.get_logger()


class GenerationClient(ABC):
    """Abstract base class for generation engine clients."""

    @abstractmethod
    async def execute(self, prompt_list: PromptList) -> GenerationResult:
        """Run a compiled prompt list and return the generated content."""
        pass


class HttpGenerationClient(GenerationClient):
    """Posts prompt lists to the generation engine over HTTP."""

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.url = url or settings.generation_url
        self.api_key = api_key if api_key is not None else settings.generation_api_key
        self.timeout = timeout or settings.generation_timeout
        self._transport = transport

        self.headers = {"Content-Type": "application/json"}
        if self.api_key:
            self.headers["Authorization"] = f"Bearer {self.api_key}"

    async def execute(self, prompt_list: PromptList) -> GenerationResult:
        logger.info("generation_request", step_count=len(prompt_list.steps))

        async with httpx.AsyncClient(transport=self._transport) as client:
            try:
                response = await client.post(
                    self.url,
                    headers=self.headers,
                    json=prompt_list.to_payload(),
                    timeout=self.timeout,
                )
            except httpx.TimeoutException as e:
                logger.error("generation_timeout", timeout=self.timeout, error=str(e))
                raise ExecutionError(f"Generation timed out after {self.timeout}s")
            except httpx.HTTPError as e:
                logger.error("generation_http_error", error=str(e))
                raise ExecutionError(f"HTTP error: {str(e)}")

        if response.status_code >= 400:
            logger.error("generation_failed", status_code=response.status_code)
            raise ExecutionError(
                f"Generation engine error: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            raise ExecutionError("Generation engine returned a non-JSON body")

        content = body.get("content") if isinstance(body, dict) else None
        if not isinstance(content, str):
            raise ExecutionError("Generation engine response has no content")

        logger.info("generation_complete", content_length=len(content))

        return GenerationResult(
            content=content,
            metadata={key: value for key, value in body.items() if key != "content"},
        )


# Singleton client instance
_client: Optional[GenerationClient] = None


def get_generation_client() -> GenerationClient:
    """Get the configured generation client instance."""
    global _client

    if _client is None:
        _client = HttpGenerationClient()

    return _client


def reset_generation_client():
    """Reset the client (for testing)."""
    global _client
    _client = None
