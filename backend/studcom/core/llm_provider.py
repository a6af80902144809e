"""
LLM and embedding factory.

Switch model by changing env vars, no code changes needed:
  LLM_PROVIDER=gemini
  LLM_MODEL=gemini-2.5-flash | gemini-2.0-flash
  LLM_API_KEY=your-key   (GEMINI_API_KEY / GOOGLE_API_KEY also accepted)
  EMBEDDING_PROVIDER=gemini
  EMBEDDING_MODEL=gemini-embedding-001
"""

import re

from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel

from studcom.config import get_settings
from studcom.core.exceptions import ConfigurationError, QuotaExceededError, UpstreamAPIError

# A leading "429 ..." is how google-api-core renders the status; anywhere else
# the digits may be a token count or a byte size.
_QUOTA_PATTERN = re.compile(r"^\s*429\b|RESOURCE[_ ]EXHAUSTED|Resource has been exhausted", re.IGNORECASE)


def _require_api_key(settings) -> None:
    if not settings.LLM_API_KEY:
        raise ConfigurationError(
            "GEMINI_API_KEY not configured",
            detail="Set LLM_API_KEY or GEMINI_API_KEY in the environment.",
        )


def create_llm(
    temperature: float | None = None,
    max_output_tokens: int | None = None,
) -> BaseChatModel:
    """Create a chat model instance based on env configuration.

    Args:
        temperature: Overrides CHAT_TEMPERATURE.
        max_output_tokens: Overrides CHAT_MAX_OUTPUT_TOKENS.

    Returns:
        BaseChatModel: A LangChain-compatible chat model.

    Raises:
        ConfigurationError: If the provider is not supported or no key is set.
    """
    settings = get_settings()

    match settings.LLM_PROVIDER:
        case "gemini":
            _require_api_key(settings)

            from langchain_google_genai import ChatGoogleGenerativeAI

            return ChatGoogleGenerativeAI(
                model=settings.LLM_MODEL,
                google_api_key=settings.LLM_API_KEY,
                temperature=settings.CHAT_TEMPERATURE if temperature is None else temperature,
                max_output_tokens=max_output_tokens or settings.CHAT_MAX_OUTPUT_TOKENS,
            )

        case _:
            raise ConfigurationError(
                f"Unknown LLM provider: '{settings.LLM_PROVIDER}'. Supported: gemini"
            )


def create_notes_llm() -> BaseChatModel:
    """Low-temperature, long-output model used for structured note extraction."""
    settings = get_settings()
    return create_llm(
        temperature=settings.NOTES_TEMPERATURE,
        max_output_tokens=settings.NOTES_MAX_OUTPUT_TOKENS,
    )


def create_embeddings() -> Embeddings:
    """Create an embedding model based on env configuration.

    Task type and output dimensionality are chosen per call, see
    features/knowledge/embedding.py.

    Raises:
        ConfigurationError: If the provider is not supported or no key is set.
    """
    settings = get_settings()

    match settings.EMBEDDING_PROVIDER:
        case "gemini":
            _require_api_key(settings)

            from langchain_google_genai import GoogleGenerativeAIEmbeddings

            return GoogleGenerativeAIEmbeddings(
                model=f"models/{settings.EMBEDDING_MODEL}",
                google_api_key=settings.LLM_API_KEY,
            )

        case _:
            raise ConfigurationError(
                f"Unknown embedding provider: '{settings.EMBEDDING_PROVIDER}'. Supported: gemini"
            )


def message_text(content) -> str:
    """Flatten a chat model message content (str or list of parts) into text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part.get("text", "") if isinstance(part, dict) else str(part)
            for part in content
            if not (isinstance(part, dict) and part.get("type") == "thinking")
        )
    return str(content)


def _status_of(error: BaseException) -> int | None:
    for candidate in (error, error.__cause__):
        if candidate is None:
            continue
        for attr in ("status_code", "code"):
            value = getattr(candidate, attr, None)
            if isinstance(value, int) and not isinstance(value, bool):
                return int(value)
    return None


def wrap_llm_error(error: Exception, label: str = "Gemini") -> UpstreamAPIError:
    """Turn a provider SDK exception into an UpstreamAPIError (quota errors kept apart).

    Quota means an HTTP 429 status on the error (or its cause), a message that
    starts with the status, or a RESOURCE_EXHAUSTED marker.
    """
    if isinstance(error, UpstreamAPIError):
        return error

    text = str(error)
    status_code = _status_of(error)

    if status_code == 429 or _QUOTA_PATTERN.search(text):
        return QuotaExceededError(f"QUOTA_EXCEEDED: {text}", status_code=429, body=text)
    return UpstreamAPIError(f"{label} API error: {text}", status_code=status_code, body=text)
