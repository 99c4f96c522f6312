"""Concrete implementations for chat completion providers."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .errors import UpstreamServiceError

logger = logging.getLogger(__name__)


class LLM(ABC):
    """Abstract Base Class for all chat completion providers."""

    @abstractmethod
    def generate_response(
        self, messages: List[Dict[str, Any]], model: Optional[str] = None, **kwargs: Any
    ) -> Any:
        """Generates a response from the provider.

        This method should return the provider's native, rich response object
        directly from their SDK.

        Parameters
        ----------
        messages : List[Dict[str, Any]]
            A list of ``{"role", "content"}`` dictionaries.
        model : str, optional
            The specific model to use for the generation. Falls back to the
            provider's default model.
        **kwargs : Any
            Provider-specific parameters (e.g., temperature) passed directly
            to the SDK.

        Returns
        -------
        Any
            The provider's native response object.
        """
        pass

    @abstractmethod
    def extract_content(self, response: Any) -> str:
        """Extracts the text content from the provider's native response object."""
        pass

    def complete(
        self, messages: List[Dict[str, Any]], model: Optional[str] = None, **kwargs: Any
    ) -> str:
        """Returns the completion text for ``messages``.

        No retry is attempted; callers decide whether to offer one.

        Raises
        ------
        UpstreamServiceError
            If the provider call fails, times out, or returns no usable content.
        """
        try:
            response = self.generate_response(messages, model=model, **kwargs)
            content = self.extract_content(response)
        except UpstreamServiceError:
            raise
        except Exception as exc:
            logger.warning("%s completion failed: %s", type(self).__name__, exc)
            raise UpstreamServiceError(
                f"{type(self).__name__} completion failed: {exc}"
            ) from exc
        return content or ""


class OpenAI(LLM):
    def __init__(
        self,
        default_model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        timeout: float = 30.0,
    ):
        from openai import OpenAI

        self.client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = default_model

    def generate_response(self, messages, model=None, **kwargs):
        return self.client.chat.completions.create(
            messages=messages, model=model or self.model, **kwargs
        )

    def extract_content(self, response: Any) -> str:
        return response.choices[0].message.content


class Anthropic(LLM):
    def __init__(
        self,
        default_model: str = "claude-3-5-sonnet-20241022",
        api_key: Optional[str] = None,
        timeout: float = 30.0,
    ):
        from anthropic import Anthropic

        self.client = Anthropic(
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
        )
        self.model = default_model

    def generate_response(self, messages, model=None, **kwargs):
        if "max_tokens" not in kwargs:
            kwargs["max_tokens"] = 1024
        # System prompts travel outside the message list for this provider.
        system = "\n\n".join(
            m["content"] for m in messages if m.get("role") == "system" and m.get("content")
        )
        if system:
            kwargs["system"] = system
        chat = [m for m in messages if m.get("role") != "system"]
        return self.client.messages.create(
            model=model or self.model, messages=chat, **kwargs
        )

    def extract_content(self, response: Any) -> str:
        return response.content[0].text


class Echo(LLM):
    """Offline provider that echoes the last message back."""

    def __init__(self, default_model: str = "echo-v1"):
        self.model = default_model

    def generate_response(self, messages, model=None, **kwargs):
        user_prompt = messages[-1]["content"] if messages else "No message provided"
        content = f"**Echo LLM - static response for testing**\n\n_Your prompt:_\n\n{user_prompt}"

        return {
            "content": content,
            "raw_response": "Echo LLM - static response for testing",
        }

    def extract_content(self, response: Any) -> str:
        if isinstance(response, dict) and "content" in response:
            return response["content"]
        return str(response)
