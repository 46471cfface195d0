import logging
from typing import Any, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from ..api.exceptions import LLMServiceError
from ..config import Settings

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"


def _message_text(content: Any) -> str:
    """Flattens LangChain message content (a string or a list of parts) to plain text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return ""


class GeminiService:
    """Single-turn text completion against Gemini through LangChain."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: str = DEFAULT_MODEL,
        temperature: float = 0.3,
        max_output_tokens: int = 4096,
        llm: Optional[Any] = None,
    ):
        """Initializes the LangChain Gemini client.

        `llm` lets callers inject a ready chat model (tests, alternative
        providers); otherwise a ChatGoogleGenerativeAI client is built. A
        failed construction leaves `self.llm` as None and every completion
        raises LLMServiceError.
        """
        self.model_name = model_name
        self.llm = llm
        if self.llm is not None:
            return
        try:
            if not api_key:
                raise ValueError("API key not found. Please set GOOGLE_API_KEY or GEMINI_API_KEY.")
            self.llm = ChatGoogleGenerativeAI(
                model=self.model_name,
                google_api_key=api_key,
                temperature=temperature,
                max_output_tokens=max_output_tokens,
            )
            logger.info(f"LangChain Gemini client initialized successfully with model: {self.model_name}.")
        except Exception as e:
            logger.exception(f"An error occurred during LangChain Gemini client initialization: {e}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeminiService":
        return cls(
            api_key=settings.GOOGLE_API_KEY,
            model_name=settings.GEMINI_MODEL,
            temperature=settings.LLM_TEMPERATURE,
            max_output_tokens=settings.LLM_MAX_OUTPUT_TOKENS,
        )

    def complete(self, prompt: str, system_instruction: Optional[str] = None) -> str:
        """Sends one prompt and returns the raw response text.

        Raises:
            LLMServiceError: client unavailable, call failed, or the answer was empty.
        """
        if self.llm is None:
            raise LLMServiceError("Gemini client was not initialized successfully.")

        messages = []
        if system_instruction:
            messages.append(SystemMessage(content=system_instruction))
        messages.append(HumanMessage(content=prompt))

        logger.debug(f"Sending completion request to Gemini (Model: {self.model_name}). Prompt: '{prompt[:100]}...'")
        try:
            response = self.llm.invoke(messages)
        except Exception as e:
            raise LLMServiceError(f"Gemini completion failed: {e}") from e

        text = _message_text(getattr(response, "content", response)).strip()
        if not text:
            raise LLMServiceError("Gemini returned an empty response.")
        return text
