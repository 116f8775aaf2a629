"""
Reasoning Client

Thin client for the Claude Messages API used to compose workflows and answer
module questions. One request per call with a bounded timeout; retries are
not attempted here and every failure surfaces as ReasoningServiceError.
"""

import logging
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import requests

from .config import DEFAULT_API_URL, DEFAULT_MODEL, Settings
from .errors import ReasoningServiceError

logger = logging.getLogger(__name__)


@runtime_checkable
class ReasoningClient(Protocol):
    """Anything that turns a prompt into text."""

    def generate(self, prompt: str, system: Optional[str] = None) -> str:
        ...


class ClaudeReasoningClient:
    """Claude API client over plain HTTP."""

    def __init__(
        self,
        api_key: str,
        api_url: str = DEFAULT_API_URL,
        model: str = DEFAULT_MODEL,
        timeout: int = 30,
        max_tokens: int = 4096,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            api_key: Claude API key
            api_url: Messages endpoint URL
            model: Model id sent with every request
            timeout: Request timeout in seconds
            max_tokens: Completion budget per request
            session: Optional requests session (connection reuse, tests)
        """
        if not api_key:
            raise ValueError("api_key is required for ClaudeReasoningClient")
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.session = session or requests.Session()

    def generate(self, prompt: str, system: Optional[str] = None) -> str:
        """Send one prompt and return the first text block of the reply."""
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": "2023-06-01",
        }
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            payload["system"] = system

        try:
            response = self.session.post(
                self.api_url,
                headers=headers,
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            result = response.json()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else "?"
            logger.error(f"Claude API returned HTTP {status}")
            raise ReasoningServiceError(f"API returned HTTP {status}") from e
        except requests.RequestException as e:
            logger.error(f"API request failed: {e}")
            raise ReasoningServiceError(f"API request failed: {e}") from e
        except ValueError as e:
            logger.error(f"API response was not JSON: {e}")
            raise ReasoningServiceError("API response was not valid JSON") from e

        if not isinstance(result, dict):
            logger.error(f"API response was {type(result).__name__}, expected an object")
            raise ReasoningServiceError("API response was not a JSON object")

        content = result.get("content") or []
        if not isinstance(content, list):
            raise ReasoningServiceError("API response content was not a list")
        for block in content:
            if not isinstance(block, dict):
                continue
            text = block.get("text")
            if block.get("type", "text") == "text" and isinstance(text, str) and text:
                return text

        raise ReasoningServiceError("API response contained no text")


def create_reasoning_client(settings: Optional[Settings] = None) -> Optional[ClaudeReasoningClient]:
    """
    Build a client from settings.

    Returns None when no API key is configured, which puts the composer on its
    keyword-based path.
    """
    settings = settings or Settings.from_env()
    if not settings.ai_enabled:
        logger.info("No Claude API key configured; AI composition disabled")
        return None
    return ClaudeReasoningClient(
        api_key=settings.api_key,
        api_url=settings.api_url,
        model=settings.model,
        timeout=settings.timeout,
        max_tokens=settings.max_tokens,
    )
