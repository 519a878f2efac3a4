"""
ragroute - Gemini Adapters
===========================
LangChain / Google Generative AI implementations of the ``ModelClient``
and ``Embedder`` collaborators.

The LangChain classes are imported lazily, inside the builders, so that
the retrieval core can be imported and tested without touching the
Gemini client libraries.
"""

from __future__ import annotations

import time
from typing import Any

from pydantic import SecretStr

from ragroute.config.settings import settings
from ragroute.src.core.errors import InvalidParameterError
from ragroute.src.utils.logger import get_logger
from ragroute.src.utils.text_utils import preview

logger = get_logger(__name__)


def _require_api_key(api_key: SecretStr | str | None) -> str:
    key = api_key if api_key is not None else settings.GOOGLE_API_KEY
    if isinstance(key, SecretStr):
        key = key.get_secret_value()
    if not key:
        raise InvalidParameterError("GOOGLE_API_KEY is not set; add it to the environment or the .env file.")
    return key


def _response_text(response: Any) -> str:
    """Flatten a chat-model response into plain text."""
    content = getattr(response, "content", response)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return str(content)


class GeminiModelClient:
    """
    ``ModelClient`` backed by ``ChatGoogleGenerativeAI``.

    Parameters
    ----------
    model, temperature, max_output_tokens, timeout
        Chat model options; ``settings.LLM_*`` when omitted.
    api_key
        Overrides ``settings.GOOGLE_API_KEY``.
    llm
        Pre-built LangChain chat model (anything with ``invoke``).  When
        given, no client is constructed.
    """

    __slots__ = ("model", "_llm")

    def __init__(
        self,
        model: str | None = None,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
        timeout: float | None = None,
        api_key: SecretStr | str | None = None,
        llm: Any = None,
    ) -> None:
        self.model = model or settings.LLM_MODEL
        if llm is None:
            from langchain_google_genai import ChatGoogleGenerativeAI

            llm = ChatGoogleGenerativeAI(
                model=self.model,
                temperature=temperature if temperature is not None else settings.LLM_TEMPERATURE,
                max_output_tokens=max_output_tokens or settings.LLM_MAX_OUTPUT_TOKENS,
                timeout=timeout or settings.LLM_TIMEOUT_SECONDS,
                google_api_key=_require_api_key(api_key),
            )
            logger.info("LLM initialised: %s (temperature=%.1f)", self.model, temperature if temperature is not None else settings.LLM_TEMPERATURE)
        self._llm = llm

    def generate(self, prompt_text: str) -> str:
        """Send *prompt_text* as one user message; request and response are logged at DEBUG."""
        from langchain_core.messages import HumanMessage

        logger.debug("Model request to %s (%d chars): %s", self.model, len(prompt_text), preview(prompt_text, 200))
        t_start = time.perf_counter()
        response = self._llm.invoke([HumanMessage(content=prompt_text)])
        text = _response_text(response)
        elapsed_ms = (time.perf_counter() - t_start) * 1000
        logger.debug("Model response from %s in %.1fms (%d chars): %s", self.model, elapsed_ms, len(text), preview(text, 200))
        return text

    def __repr__(self) -> str:
        return f"GeminiModelClient(model='{self.model}')"


def build_gemini_embedder(model: str | None = None, api_key: SecretStr | str | None = None) -> Any:
    """Return a ``GoogleGenerativeAIEmbeddings`` instance (satisfies ``Embedder``)."""
    from langchain_google_genai import GoogleGenerativeAIEmbeddings

    model_name = model or settings.EMBEDDING_MODEL
    embedder = GoogleGenerativeAIEmbeddings(model=model_name, google_api_key=_require_api_key(api_key))
    logger.info("Embedder initialised: %s", model_name)
    return embedder
