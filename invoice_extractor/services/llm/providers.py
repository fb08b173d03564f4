"""
Text-generation providers used by the extraction engine.

Each provider turns a prompt into raw model text with exactly one request
(client-side retries are disabled; retry policy lives in the pipeline).
Transport failures are mapped onto the pipeline error taxonomy:

- missing credentials, 401/403          -> ModelUnavailable
- timeouts, connection errors, 429, 5xx -> ModelRequestError
- empty or blocked answers              -> MalformedModelOutput
"""

from abc import ABC, abstractmethod
import httpx
from loguru import logger
from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    AuthenticationError,
    OpenAI,
    PermissionDeniedError,
)
from ...core.config import Settings
from ...core.errors import MalformedModelOutput, ModelRequestError, ModelUnavailable

SUPPORTED_MODELS = ("gemini", "openai")


class TextGenerator(ABC):
    """A configured model endpoint: prompt in, raw text out."""

    name: str = ""

    @abstractmethod
    def generate(self, prompt: str) -> str:
        pass

    def close(self) -> None:
        pass


def _raise_for_status(provider: str, response: httpx.Response) -> None:
    if response.status_code < 400:
        return

    body = response.text[:500]
    details = {"provider": provider, "status_code": response.status_code}
    logger.error(f"{provider} API error: {response.status_code} - {body}")

    if response.status_code in (401, 403) or "API_KEY_INVALID" in body:
        raise ModelUnavailable(f"{provider} rejected the configured credentials", details)
    raise ModelRequestError(f"{provider} API returned HTTP {response.status_code}", details)


class GeminiGenerator(TextGenerator):
    """Google Gemini via the generateContent REST endpoint."""

    name = "gemini"

    def __init__(
        self,
        api_key: str | None,
        model: str = "gemini-1.5-flash-latest",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(timeout=timeout)

    def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise ModelUnavailable("GEMINI_API_KEY environment variable is not set", {"provider": self.name})

        url = f"{self.base_url}/models/{self.model}:generateContent"
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": 0},
        }

        try:
            response = self._client.post(url, headers={"x-goog-api-key": self.api_key}, json=body)
        except httpx.TimeoutException as e:
            raise ModelRequestError("Gemini request timed out", {"provider": self.name}) from e
        except httpx.HTTPError as e:
            raise ModelRequestError(f"Gemini request failed: {e}", {"provider": self.name}) from e

        _raise_for_status("Gemini", response)

        try:
            data = response.json()
            parts = data["candidates"][0]["content"]["parts"]
            text = "".join(part.get("text", "") for part in parts)
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise MalformedModelOutput("Gemini returned no usable candidate", {"provider": self.name}) from e

        if not text.strip():
            raise MalformedModelOutput("Gemini returned an empty response", {"provider": self.name})

        logger.debug("Gemini response received", chars=len(text))
        return text

    def close(self) -> None:
        self._client.close()


class OpenAIGenerator(TextGenerator):
    """OpenAI-compatible chat completions (OpenAI, Azure OpenAI, Groq, ...)."""

    name = "openai"

    def __init__(
        self,
        api_key: str | None,
        model: str | None,
        base_url: str | None = None,
        timeout: float = 60.0,
        http_client: httpx.Client | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.http_client = http_client
        self._client: OpenAI | None = None

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
                http_client=self.http_client,
            )
        return self._client

    def generate(self, prompt: str) -> str:
        if not self.api_key or not self.model:
            raise ModelUnavailable(
                "LLM_API_KEY and LLM_DEPLOYMENT must be set to use the openai model",
                {"provider": self.name},
            )

        try:
            completion = self._get_client().chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=0,
            )
        except (AuthenticationError, PermissionDeniedError) as e:
            raise ModelUnavailable("LLM endpoint rejected the configured credentials", {"provider": self.name}) from e
        except APIConnectionError as e:
            # Includes APITimeoutError
            raise ModelRequestError(f"LLM request failed: {e}", {"provider": self.name}) from e
        except APIStatusError as e:
            logger.error(f"LLM API error: {e.status_code} - {e.message}")
            raise ModelRequestError(
                f"LLM API returned HTTP {e.status_code}",
                {"provider": self.name, "status_code": e.status_code},
            ) from e
        except APIError as e:
            # Unparseable or unexpected response bodies
            raise ModelRequestError(f"LLM request failed: {e.message}", {"provider": self.name}) from e

        content = completion.choices[0].message.content if completion.choices else None
        if not content or not content.strip():
            raise MalformedModelOutput("LLM returned an empty response", {"provider": self.name})

        logger.debug("LLM response received", chars=len(content))
        return content

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


def build_generator(name: str, settings: Settings) -> TextGenerator:
    """Construct the provider registered under a supported model selector."""
    if name == "gemini":
        return GeminiGenerator(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            timeout=settings.llm_timeout_seconds,
        )
    if name == "openai":
        return OpenAIGenerator(
            api_key=settings.llm_api_key,
            model=settings.llm_deployment,
            base_url=settings.llm_base_url,
            timeout=settings.llm_timeout_seconds,
        )
    raise KeyError(name)
