"""Generation backend contract and the LangChain chat-model adapter."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage

from citerag.errors import classify_backend_error

logger = logging.getLogger(__name__)

ChatModelFactory = Callable[[str], BaseChatModel]


class GenerationBackend(ABC):
    """Produces text for a prompt with a named model."""

    @abstractmethod
    async def generate(self, model_id: str, prompt: str) -> str:
        """Return generated text.

        Raises:
            RetryableBackendError: rate limit, quota or unavailable model.
            FatalBackendError: any other failure.
        """


class LangChainChatBackend(GenerationBackend):
    """Runs prompts through LangChain chat models, one instance per model id.

    Provider exceptions are translated into the retryable/fatal taxonomy here,
    at the collaborator boundary, so the generator never inspects provider
    types or messages.
    """

    def __init__(self, model_factory: ChatModelFactory) -> None:
        self._model_factory = model_factory
        self._models: dict[str, BaseChatModel] = {}

    @classmethod
    def openai(
        cls,
        *,
        api_key: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 1024,
    ) -> "LangChainChatBackend":
        from langchain_openai import ChatOpenAI

        def _factory(model_id: str) -> BaseChatModel:
            kwargs: dict[str, Any] = {
                "model": model_id,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "max_retries": 0,
            }
            if api_key:
                kwargs["api_key"] = api_key
            return ChatOpenAI(**kwargs)

        return cls(_factory)

    async def generate(self, model_id: str, prompt: str) -> str:
        try:
            model = self._get_model(model_id)
            response = await model.ainvoke([HumanMessage(content=prompt)])
        except Exception as exc:
            error_cls = classify_backend_error(exc)
            raise error_cls(f"{model_id}: {exc}") from exc
        return _message_text(response)

    def _get_model(self, model_id: str) -> BaseChatModel:
        model = self._models.get(model_id)
        if model is None:
            model = self._model_factory(model_id)
            self._models[model_id] = model
        return model


def _message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            elif isinstance(item, str):
                parts.append(item)
        return "".join(parts).strip()
    return str(content)
