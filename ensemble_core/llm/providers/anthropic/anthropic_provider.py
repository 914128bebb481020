"""
Anthropic Claude LLM provider implementation.

This module implements the LLMProviderInterface for Anthropic's Messages API.
"""

import logging
from typing import List, Dict, Any, Optional, Tuple

import anthropic
from anthropic import AsyncAnthropic

from ensemble_core.llm.interfaces.llm_provider_interface import (
    LLMProviderInterface,
    GenerationRequest,
    MessageRole,
    ProviderError,
    LLMConnectionError,
    LLMTimeoutError,
    LLMRateLimitError,
    LLMAuthenticationError,
)

# Claude rejects temperatures above 1.0
MAX_TEMPERATURE = 1.0


class AnthropicLLMProvider(LLMProviderInterface):
    """
    Anthropic Claude LLM provider.

    System messages are lifted out of the conversation into the dedicated
    ``system`` parameter, which is the only place Claude accepts them.
    """

    provider_name = "anthropic"

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize the Anthropic LLM provider.

        Args:
            config: Configuration dictionary with keys:
                - api_key: Anthropic API key (required)
                - model_name: Claude model name (default: 'claude-3-opus-20240229')
                - timeout: Request timeout in seconds (default: 30)
                - base_url: Optional custom base URL
        """
        super().__init__(config)

        self.logger = logging.getLogger(__name__)

        # Extract configuration
        self.api_key = config.get("api_key")
        if not self.api_key:
            raise LLMAuthenticationError(
                "Anthropic API key is required for Anthropic provider", provider=self.provider_name
            )

        self.base_url = config.get("base_url")

        # Initialize Anthropic client
        try:
            client_kwargs = {"api_key": self.api_key, "timeout": self.timeout, "max_retries": 0}

            if self.base_url:
                client_kwargs["base_url"] = self.base_url

            self.client = AsyncAnthropic(**client_kwargs)
        except Exception as e:
            raise LLMConnectionError(
                f"Failed to initialize Anthropic client: {str(e)}", provider=self.provider_name
            ) from e

    def get_default_model(self) -> str:
        """Get the default model name for Anthropic provider."""
        return "claude-3-opus-20240229"

    async def disconnect(self) -> bool:
        """
        Disconnect from the Anthropic API.

        Returns:
            True if disconnection successful
        """
        try:
            await self.client.close()
        except Exception as e:
            self.logger.debug(f"Ignoring error while closing Anthropic client: {e}")

        self._is_connected = False
        self.logger.info("Disconnected from Anthropic API")
        return True

    def _convert_messages_to_anthropic(
        self, request: GenerationRequest
    ) -> Tuple[List[Dict[str, str]], Optional[str]]:
        """
        Convert internal Message objects to Anthropic API format.

        Args:
            request: Normalized generation request

        Returns:
            Tuple of (anthropic_messages, system_message)
        """
        anthropic_messages = [
            {"role": msg.role.value, "content": msg.content}
            for msg in request.messages
            if msg.role in (MessageRole.USER, MessageRole.ASSISTANT)
        ]
        system_message = request.system_text or None
        return anthropic_messages, system_message

    async def generate(self, request: GenerationRequest) -> str:
        """
        Generate a Claude message for the request.

        Args:
            request: Normalized generation request

        Returns:
            Generated text

        Raises:
            ProviderError: If generation fails
        """
        anthropic_messages, system_message = self._convert_messages_to_anthropic(request)

        request_params = {
            "model": self.resolve_model(request),
            "messages": anthropic_messages,
            "temperature": min(request.temperature, MAX_TEMPERATURE),
            "max_tokens": request.max_tokens,
        }
        if system_message:
            request_params["system"] = system_message
        if request.stop_sequences:
            request_params["stop_sequences"] = sorted(request.stop_sequences)

        try:
            response = await self.client.messages.create(**request_params)
        except anthropic.RateLimitError as e:
            self.logger.warning(f"Rate limit error: {str(e)}")
            raise LLMRateLimitError(f"Rate limit exceeded: {str(e)}", provider=self.provider_name) from e
        except anthropic.AuthenticationError as e:
            self.logger.error(f"Authentication error: {str(e)}")
            raise LLMAuthenticationError(
                f"Anthropic rejected credentials: {str(e)}", provider=self.provider_name
            ) from e
        except anthropic.APITimeoutError as e:
            raise LLMTimeoutError(
                f"Anthropic request timed out: {str(e)}", provider=self.provider_name
            ) from e
        except anthropic.APIConnectionError as e:
            self.logger.warning(f"API connection error: {str(e)}")
            raise LLMConnectionError(
                f"Failed to connect to Anthropic API: {str(e)}", provider=self.provider_name
            ) from e
        except anthropic.APIStatusError as e:
            transient = e.status_code >= 500 or e.status_code in (408, 409, 429, 529)
            raise ProviderError(
                f"Anthropic API error ({e.status_code}): {str(e)}",
                provider=self.provider_name,
                transient=transient,
            ) from e
        except anthropic.APIError as e:
            raise ProviderError(f"Anthropic API error: {str(e)}", provider=self.provider_name) from e

        # Concatenate text blocks; tool-use blocks are not requested
        text_parts = [
            block.text for block in response.content if getattr(block, "type", None) == "text"
        ]
        if not text_parts:
            raise ProviderError("Empty response from Anthropic API", provider=self.provider_name)

        return "".join(text_parts)
