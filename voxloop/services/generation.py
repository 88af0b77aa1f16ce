"""
Text generation through an Ollama server.

Sends one non-streaming request to /api/generate. The blocking requests
call runs in the event loop's default executor so the loop stays free.
"""

import asyncio
import logging
from typing import List, Optional

import requests

from voxloop.core.config import GenerationConfig
from voxloop.core.errors import GenerationFailed, StageTimeout
from voxloop.core.types import GenerationRequest, GenerationResult

logger = logging.getLogger(__name__)


class OllamaClient:
    """Client for the Ollama generate API."""

    def __init__(self, config: GenerationConfig, session: Optional[requests.Session] = None):
        """
        Args:
            config: Base URL, default model and request timeout
            session: Optional requests session (created if omitted)
        """
        self.config = config
        self.base_url = config.base_url.rstrip('/')
        self.session = session or requests.Session()
        self.headers = {"Content-Type": "application/json"}

    @property
    def generate_url(self) -> str:
        return f"{self.base_url}/api/generate"

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """
        Generate a completion without blocking the event loop.

        Raises:
            GenerationFailed: Connection error, non-2xx status or bad body
            StageTimeout: The server did not answer within the timeout
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.send_request, request)

    def send_request(self, request: GenerationRequest) -> GenerationResult:
        """Blocking version of generate()."""
        payload = request.to_payload()
        timeout = self.config.timeout_seconds

        logger.info(f"Sending request to {self.generate_url} (model: {request.model_name})")
        logger.debug(f"Prompt: {request.prompt[:100]}{'...' if len(request.prompt) > 100 else ''}")

        try:
            response = self.session.post(
                self.generate_url,
                json=payload,
                headers=self.headers,
                timeout=timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"Request to {self.generate_url} timed out after {timeout}s")
            raise StageTimeout(
                f"The language model did not answer within {timeout}s.", stage="generation", timeout=timeout
            ) from e
        except requests.exceptions.ConnectionError as e:
            logger.error(f"Could not connect to Ollama at {self.base_url}: {e}")
            raise GenerationFailed() from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Request failed: {e}")
            raise GenerationFailed() from e

        if not response.ok:
            logger.error(f"HTTP {response.status_code}: {response.text[:500]}")
            raise GenerationFailed()

        try:
            result = GenerationResult.from_payload(response.json())
        except ValueError as e:
            logger.error(f"Invalid generation response: {e}")
            raise GenerationFailed() from e

        logger.info(f"Response received from {result.model_name} ({len(result.response_text.split())} words)")
        return result

    def check_connection(self) -> List[str]:
        """
        Check that the server is reachable.

        Returns:
            Names of the models the server has installed

        Raises:
            GenerationFailed: If the server cannot be reached or answers badly
        """
        url = f"{self.base_url}/api/tags"
        try:
            response = self.session.get(url, headers=self.headers, timeout=5)
            response.raise_for_status()
            models = response.json().get("models", [])
        except (requests.exceptions.RequestException, ValueError, AttributeError) as e:
            logger.error(f"Cannot reach Ollama at {self.base_url}: {e}")
            raise GenerationFailed(f"Cannot reach the language model server at {self.base_url}.") from e

        return [m.get("name", "unknown") for m in models if isinstance(m, dict)]

    def close(self) -> None:
        self.session.close()
