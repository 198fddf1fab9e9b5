"""OpenAI-compatible chat client for metadata analysis (xAI, OpenAI, Groq, etc.).

Owns the CALL and RETRY steps: one POST per attempt, errors classified
as transient (429/502/503/504, network) or terminal (everything else).
Transient errors never leave this module. Once attempts run out they
are re-raised as ``AnalysisTerminalError``.
"""

import asyncio
import logging
from typing import Optional

import httpx

from .. import __version__
from ..errors import AnalysisError, AnalysisTerminalError, AnalysisTransientError

logger = logging.getLogger("pagedrop.llm")

TRANSIENT_STATUSES = frozenset({429, 502, 503, 504})
MAX_PROMPT_CHARS = 50_000


def classify_status(status: int) -> type[AnalysisError]:
    """Map an HTTP status to the error class it should raise."""
    if status in TRANSIENT_STATUSES:
        return AnalysisTransientError
    return AnalysisTerminalError


class MetadataClient:
    """Chat-completions client that requests a JSON-object response.

    Works with any OpenAI-compatible endpoint:
    - xAI:    https://api.x.ai/v1
    - OpenAI: https://api.openai.com/v1
    - Groq:   https://api.groq.com/openai/v1
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "grok-4",
        base_url: str = "https://api.x.ai/v1",
        timeout: float = 30.0,
        max_attempts: int = 3,
        base_delay: float = 1.0,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay

    def _get_headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "User-Agent": f"pagedrop/{__version__}",
        }

    def _build_body(self, html: str, system_prompt: str, temperature: float) -> dict:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": html[:MAX_PROMPT_CHARS]},
            ],
            "response_format": {"type": "json_object"},
            "temperature": temperature,
            "max_tokens": 1000,
        }

    async def _post_once(self, client: httpx.AsyncClient, body: dict) -> str:
        """One attempt. Returns ``choices[0].message.content``."""
        try:
            resp = await client.post(
                f"{self.base_url}/chat/completions",
                json=body,
                headers=self._get_headers(),
            )
        except httpx.TimeoutException as e:
            raise AnalysisTransientError(f"Request timed out ({type(e).__name__})") from e
        except httpx.TransportError as e:
            raise AnalysisTransientError(f"Network error ({type(e).__name__})") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise AnalysisTerminalError(f"Request failed ({type(e).__name__})") from e

        status = resp.status_code
        if status >= 400:
            error_cls = classify_status(status)
            raise error_cls(f"API request failed: HTTP {status}", status=status)

        try:
            data = resp.json()
        except ValueError as e:
            raise AnalysisTerminalError("Response body is not JSON", status=status) from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AnalysisTerminalError("Unexpected response shape (no choices[0].message.content)", status=status) from e

        if not isinstance(content, str) or not content.strip():
            raise AnalysisTerminalError("Empty response content", status=status)
        return content

    async def request_metadata(self, html: str, system_prompt: str, temperature: float = 0.7) -> str:
        """Send the sanitized HTML for analysis, retrying transient failures.

        Args:
            html: Sanitized HTML (user message).
            system_prompt: Instruction selected for the content type.
            temperature: Sampling temperature.

        Returns:
            Raw JSON string from the model (not yet parsed).

        Raises:
            AnalysisTerminalError: non-retryable failure, or retries exhausted.
        """
        if not self.api_key:
            raise AnalysisTerminalError("No language-model API key configured", attempts=0)

        body = self._build_body(html, system_prompt, temperature)
        attempt = 0

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            while True:
                attempt += 1
                try:
                    content = await self._post_once(client, body)
                    if attempt > 1:
                        logger.info(f"Analysis succeeded on attempt {attempt}/{self.max_attempts}")
                    return content
                except AnalysisTransientError as e:
                    if attempt >= self.max_attempts:
                        logger.error(f"Analysis gave up after {attempt} attempts: {e}")
                        raise AnalysisTerminalError(
                            f"Retries exhausted after {attempt} attempts: {e}",
                            status=e.status,
                            attempts=attempt,
                        ) from e
                    delay = self.base_delay * (2 ** (attempt - 1))
                    logger.warning(f"{e}, retrying in {delay:.1f}s (attempt {attempt}/{self.max_attempts})")
                    await asyncio.sleep(delay)
                except AnalysisTerminalError as e:
                    e.attempts = attempt
                    logger.error(f"Analysis failed (terminal, attempt {attempt}): {e}")
                    raise
