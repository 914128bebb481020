"""
Ollama LLM provider implementation.

This module implements the LLMProviderInterface for Ollama's local model inference API,
so an ensemble can run entirely on local models without external API services.
"""

import asyncio
import logging
from typing import List, Dict, Any, Optional

import aiohttp

from ensemble_core.llm.interfaces.llm_provider_interface import (
    LLMProviderInterface,
    GenerationRequest,
    ProviderError,
    LLMConnectionError,
    LLMTimeoutError,
    LLMRateLimitError,
)


class OllamaLLMProvider(LLMProviderInterface):
    """
    Ollama LLM provider for local model inference.

    Uses HTTP requests against the ``/api/chat`` endpoint of a running Ollama server.
    """

    provider_name = "ollama"

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize the Ollama LLM provider.

        Args:
            config: Configuration dictionary with keys:
                - base_url: Ollama server URL (default: "http://localhost:11434")
                - model_name: Model name (default: "llama2")
                - timeout: Request timeout in seconds (default: 30)
                - keep_alive: Keep model loaded (default: "5m")
        """
        super().__init__(config)

        self.logger = logging.getLogger(__name__)

        self.base_url = (config.get('base_url') or 'http://localhost:11434').rstrip('/')
        self.keep_alive = config.get('keep_alive', '5m')

        # HTTP session for connection pooling
        self._session: Optional[aiohttp.ClientSession] = None

    def get_default_model(self) -> str:
        """Get the default model name for Ollama provider."""
        return "llama2"

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def connect(self) -> bool:
        """
        Check that the Ollama server answers.

        Raises:
            LLMConnectionError: If the server cannot be reached
        """
        try:
            session = await self._get_session()
            async with session.get(f"{self.base_url}/api/version") as response:
                if response.status != 200:
                    raise LLMConnectionError(
                        f"Ollama server returned status {response.status}",
                        provider=self.provider_name,
                    )
                version_info = await response.json()
                self.logger.info(
                    f"Connected to Ollama server version: {version_info.get('version', 'unknown')}"
                )
        except aiohttp.ClientError as e:
            raise LLMConnectionError(
                f"Failed to connect to Ollama server at {self.base_url}: {str(e)}",
                provider=self.provider_name,
            ) from e

        self._is_connected = True
        return True

    async def disconnect(self) -> bool:
        """
        Close the HTTP session.

        Returns:
            True if disconnection successful, False otherwise
        """
        try:
            if self._session and not self._session.closed:
                await self._session.close()
        except aiohttp.ClientError as e:
            self.logger.warning(f"Error during disconnect: {str(e)}")
            return False

        self._is_connected = False
        self.logger.info("Disconnected from Ollama server")
        return True

    def _convert_messages_to_ollama(self, request: GenerationRequest) -> List[Dict[str, str]]:
        # Ollama understands system, user and assistant natively
        return [message.to_dict() for message in request.messages]

    async def generate(self, request: GenerationRequest) -> str:
        """
        Generate a chat completion on the local server.

        Raises:
            ProviderError: If generation fails
        """
        options = {
            "temperature": request.temperature,
            "num_predict": request.max_tokens,
        }
        if request.stop_sequences:
            options["stop"] = sorted(request.stop_sequences)

        request_data = {
            "model": self.resolve_model(request),
            "messages": self._convert_messages_to_ollama(request),
            "stream": False,
            "options": options,
            "keep_alive": self.keep_alive,
        }

        try:
            session = await self._get_session()
            async with session.post(f"{self.base_url}/api/chat", json=request_data) as response:
                if response.status == 429:
                    raise LLMRateLimitError(
                        "Ollama server is overloaded", provider=self.provider_name
                    )
                if response.status != 200:
                    error_text = await response.text()
                    raise ProviderError(
                        f"Ollama API returned status {response.status}: {error_text}",
                        provider=self.provider_name,
                        transient=response.status >= 500,
                    )
                response_data = await response.json()
        except asyncio.TimeoutError as e:
            raise LLMTimeoutError(
                f"Ollama request timed out after {self.timeout}s", provider=self.provider_name
            ) from e
        except aiohttp.ClientError as e:
            self.logger.error(f"HTTP error generating completion: {str(e)}")
            raise LLMConnectionError(
                f"Failed to connect to Ollama API: {str(e)}", provider=self.provider_name
            ) from e

        message = response_data.get('message') or {}
        content = message.get('content', '')
        if not content:
            raise ProviderError("Empty response from Ollama API", provider=self.provider_name)

        self.logger.debug(
            f"Ollama usage: prompt={response_data.get('prompt_eval_count', 0)} "
            f"completion={response_data.get('eval_count', 0)}"
        )
        return content
