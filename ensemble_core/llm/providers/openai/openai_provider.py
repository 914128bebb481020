"""
OpenAI GPT LLM provider implementation.

This module implements the LLMProviderInterface for OpenAI's chat completions API.
"""

import logging
from typing import List, Dict, Any

import openai
from openai import AsyncOpenAI
from openai.types.chat import ChatCompletion

from ensemble_core.llm.interfaces.llm_provider_interface import (
    LLMProviderInterface,
    GenerationRequest,
    ProviderError,
    LLMConnectionError,
    LLMTimeoutError,
    LLMRateLimitError,
    LLMAuthenticationError,
)


class OpenAILLMProvider(LLMProviderInterface):
    """
    OpenAI GPT LLM provider.

    Translates normalized requests into chat completion calls.
    """

    provider_name = "openai"

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize the OpenAI LLM provider.

        Args:
            config: Configuration dictionary with keys:
                - api_key: OpenAI API key (required)
                - model_name: GPT model name (default: 'gpt-4-turbo')
                - timeout: Request timeout in seconds (default: 30)
                - organization: Optional organization ID
                - base_url: Optional custom base URL
        """
        super().__init__(config)

        self.logger = logging.getLogger(__name__)

        # Extract configuration
        self.api_key = config.get("api_key")
        if not self.api_key:
            raise LLMAuthenticationError(
                "OpenAI API key is required for OpenAI provider", provider=self.provider_name
            )

        self.organization = config.get("organization")
        self.base_url = config.get("base_url")

        # Initialize OpenAI client; retries are owned by the router
        try:
            client_kwargs = {"api_key": self.api_key, "timeout": self.timeout, "max_retries": 0}

            if self.organization:
                client_kwargs["organization"] = self.organization
            if self.base_url:
                client_kwargs["base_url"] = self.base_url

            self.client = AsyncOpenAI(**client_kwargs)
        except Exception as e:
            raise LLMConnectionError(
                f"Failed to initialize OpenAI client: {str(e)}", provider=self.provider_name
            ) from e

    def get_default_model(self) -> str:
        """Get the default model name for OpenAI provider."""
        return "gpt-4-turbo"

    async def disconnect(self) -> bool:
        """
        Disconnect from the OpenAI API.

        Returns:
            True if disconnection successful
        """
        try:
            await self.client.close()
        except Exception as e:
            self.logger.debug(f"Ignoring error while closing OpenAI client: {e}")

        self._is_connected = False
        self.logger.info("Disconnected from OpenAI API")
        return True

    def _convert_messages_to_openai(self, request: GenerationRequest) -> List[Dict[str, str]]:
        """
        Convert internal Message objects to OpenAI API format.

        OpenAI accepts system, user and assistant roles natively.
        """
        return [message.to_dict() for message in request.messages]

    async def generate(self, request: GenerationRequest) -> str:
        """
        Generate a chat completion for the request.

        Args:
            request: Normalized generation request

        Returns:
            Generated text

        Raises:
            ProviderError: If generation fails
        """
        request_params = {
            "model": self.resolve_model(request),
            "messages": self._convert_messages_to_openai(request),
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if request.stop_sequences:
            request_params["stop"] = sorted(request.stop_sequences)

        try:
            response: ChatCompletion = await self.client.chat.completions.create(**request_params)
        except openai.RateLimitError as e:
            self.logger.warning(f"Rate limit error: {str(e)}")
            raise LLMRateLimitError(f"Rate limit exceeded: {str(e)}", provider=self.provider_name) from e
        except openai.AuthenticationError as e:
            self.logger.error(f"Authentication error: {str(e)}")
            raise LLMAuthenticationError(
                f"OpenAI rejected credentials: {str(e)}", provider=self.provider_name
            ) from e
        except openai.APITimeoutError as e:
            raise LLMTimeoutError(f"OpenAI request timed out: {str(e)}", provider=self.provider_name) from e
        except openai.APIConnectionError as e:
            self.logger.warning(f"API connection error: {str(e)}")
            raise LLMConnectionError(
                f"Failed to connect to OpenAI API: {str(e)}", provider=self.provider_name
            ) from e
        except openai.APIStatusError as e:
            # 5xx and 429-like statuses are worth retrying, other 4xx are not
            transient = e.status_code >= 500 or e.status_code in (408, 409, 429)
            raise ProviderError(
                f"OpenAI API error ({e.status_code}): {str(e)}",
                provider=self.provider_name,
                transient=transient,
            ) from e
        except openai.APIError as e:
            raise ProviderError(f"OpenAI API error: {str(e)}", provider=self.provider_name) from e

        if not response.choices or not response.choices[0].message:
            raise ProviderError("Empty response from OpenAI API", provider=self.provider_name)

        if response.usage:
            self.logger.debug(
                f"OpenAI usage: prompt={response.usage.prompt_tokens} "
                f"completion={response.usage.completion_tokens}"
            )

        return response.choices[0].message.content or ""
