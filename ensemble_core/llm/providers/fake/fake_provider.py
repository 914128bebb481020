"""
Scripted in-process LLM provider.

Used by the test suite and for offline runs. Responses and failures are queued up
front and consumed in order; every request is recorded for later inspection.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Union

from ensemble_core.llm.interfaces.llm_provider_interface import (
    LLMProviderInterface,
    GenerationRequest,
    ProviderError,
)

Script = Union[str, BaseException, Callable[[GenerationRequest], str]]


class FakeLLMProvider(LLMProviderInterface):
    """
    Deterministic provider driven by a script.

    Config keys:
        - name: provider name reported to the router (default: 'fake')
        - responses: initial list of scripted replies
        - default_response: reply once the script is exhausted (default: echoes the prompt)
        - fail_times: number of leading calls that raise a transient ProviderError
        - delay: seconds to sleep before answering
    """

    provider_name = "fake"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = dict(config or {})
        super().__init__(config)

        self.logger = logging.getLogger(__name__)
        self.provider_name = config.get("name", "fake")
        self.default_response: Optional[str] = config.get("default_response")
        self.delay: float = config.get("delay", 0.0)
        self.requests: List[GenerationRequest] = []

        self._script: Deque[Script] = deque()
        for _ in range(config.get("fail_times", 0)):
            self.queue_failure()
        for response in config.get("responses", []):
            self.queue_response(response)

    def get_default_model(self) -> str:
        return "fake-model"

    def queue_response(self, response: Union[str, Callable[[GenerationRequest], str]]) -> None:
        self._script.append(response)

    def queue_failure(self, error: Optional[BaseException] = None) -> None:
        if error is None:
            error = ProviderError(
                f"scripted failure from {self.provider_name}", provider=self.provider_name
            )
        self._script.append(error)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    async def generate(self, request: GenerationRequest) -> str:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)

        if self._script:
            step = self._script.popleft()
            if isinstance(step, BaseException):
                raise step
            if callable(step):
                return step(request)
            return step

        if self.default_response is not None:
            return self.default_response
        return f"[{self.provider_name}] {request.last_user_content}"
