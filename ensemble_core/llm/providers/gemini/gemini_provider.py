"""
Google Gemini LLM provider implementation.

This module implements the LLMProviderInterface for Google's Gemini API using the
async surface of the google-genai SDK.
"""

import logging
from typing import List, Dict, Any

from google import genai
from google.genai import errors, types

from ensemble_core.llm.interfaces.llm_provider_interface import (
    LLMProviderInterface,
    GenerationRequest,
    MessageRole,
    ProviderError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMAuthenticationError,
)


class GeminiLLMProvider(LLMProviderInterface):
    """
    Google Gemini LLM provider.

    Gemini calls the assistant role ``model`` and takes system text as a
    ``system_instruction`` on the generation config.
    """

    provider_name = "gemini"

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize the Gemini LLM provider.

        Args:
            config: Configuration dictionary with keys:
                - api_key: Google API key (required)
                - model_name: Gemini model name (default: 'gemini-pro')
                - timeout: Request timeout in seconds (default: 30)
        """
        super().__init__(config)

        self.logger = logging.getLogger(__name__)

        self.api_key = config.get("api_key")
        if not self.api_key:
            raise LLMAuthenticationError(
                "Google API key is required for Gemini provider", provider=self.provider_name
            )

        try:
            self.client = genai.Client(api_key=self.api_key)
        except Exception as e:
            raise LLMConnectionError(
                f"Failed to initialize Gemini client: {str(e)}", provider=self.provider_name
            ) from e

    def get_default_model(self) -> str:
        """Get the default model name for Gemini provider."""
        return "gemini-pro"

    def _convert_messages_to_gemini(self, request: GenerationRequest) -> List[types.Content]:
        contents = []
        for msg in request.conversation:
            role = "model" if msg.role == MessageRole.ASSISTANT else "user"
            contents.append(types.Content(role=role, parts=[types.Part(text=msg.content)]))
        return contents

    async def generate(self, request: GenerationRequest) -> str:
        """
        Generate content for the request.

        Raises:
            ProviderError: If generation fails
        """
        gen_config = types.GenerateContentConfig(
            temperature=request.temperature,
            max_output_tokens=request.max_tokens,
            system_instruction=request.system_text or None,
            stop_sequences=sorted(request.stop_sequences) if request.stop_sequences else None,
        )

        try:
            response = await self.client.aio.models.generate_content(
                model=self.resolve_model(request),
                contents=self._convert_messages_to_gemini(request),
                config=gen_config,
            )
        except errors.APIError as e:
            if e.code == 429:
                self.logger.warning(f"Rate limit error: {str(e)}")
                raise LLMRateLimitError(
                    f"Rate limit exceeded: {str(e)}", provider=self.provider_name
                ) from e
            if e.code in (401, 403):
                self.logger.error(f"Authentication error: {str(e)}")
                raise LLMAuthenticationError(
                    f"Gemini rejected credentials: {str(e)}", provider=self.provider_name
                ) from e
            transient = e.code is None or e.code >= 500 or e.code == 408
            raise ProviderError(
                f"Gemini API error ({e.code}): {str(e)}",
                provider=self.provider_name,
                transient=transient,
            ) from e

        text = response.text
        if not text:
            raise ProviderError("Empty response from Gemini API", provider=self.provider_name)

        usage = getattr(response, "usage_metadata", None)
        if usage is not None:
            self.logger.debug(
                f"Gemini usage: prompt={getattr(usage, 'prompt_token_count', 0)} "
                f"completion={getattr(usage, 'candidates_token_count', 0)}"
            )

        return text
