import asyncio
from functools import lru_cache
from typing import Optional, Protocol

import openai
import structlog
from openai import AsyncOpenAI

from errors import ProviderError
from settings import get_settings

logger = structlog.get_logger(__name__)

# --- Application Info sent to OpenAI-compatible gateways (e.g. OpenRouter) ---
APP_NAME = "Job Tracker"

NO_SUGGESTION = "No suggestion generated."

SUGGESTION_PROMPT_TEMPLATE = (
    "Improve the following resume to better match the job description.\n\n"
    "Resume:\n{resume}\n\n"
    "Job Description:\n{job_description}\n\n"
    "Suggestions:"
)


def build_suggestion_prompt(resume: str, job_description: str) -> str:
    return SUGGESTION_PROMPT_TEMPLATE.format(resume=resume, job_description=job_description)


class CompletionProvider(Protocol):
    async def complete(self, prompt: str) -> Optional[str]:
        ...


class OpenAICompletionProvider:
    """Single-message chat completion with a hard timeout and no retries."""

    def __init__(
        self,
        model: str,
        timeout: float,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.model = model
        self.timeout = timeout
        self._api_key = api_key
        self._base_url = base_url
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                logger.error("OPENAI_API_KEY not found in environment variables or .env file.")
                raise ProviderError("completion provider is not configured")
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self.timeout,
                max_retries=0,
                default_headers={"X-Title": APP_NAME},
            )
        return self._client

    async def complete(self, prompt: str) -> Optional[str]:
        messages = [{"role": "user", "content": prompt}]
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(model=self.model, messages=messages),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.warning("Completion timed out", model=self.model, timeout=self.timeout)
            raise ProviderError("completion timed out") from exc
        except openai.OpenAIError as exc:
            logger.warning("Completion failed", model=self.model, exc=str(exc))
            raise ProviderError(str(exc)) from exc

        if not response.choices:
            return None
        return response.choices[0].message.content


@lru_cache
def get_completion_provider() -> CompletionProvider:
    settings = get_settings()
    return OpenAICompletionProvider(
        model=settings.openai_model,
        timeout=settings.llm_timeout_seconds,
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
    )
