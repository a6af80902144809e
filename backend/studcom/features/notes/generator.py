"""
Notes feature: turn one chunk of text into a validated NotesFragment.

Model output is treated as untrusted: it is sanitized, parsed and validated
into a tagged result instead of raising. One retry with a stricter prefix is
allowed per chunk; a quota error aborts the whole job.
"""

import json
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path

from langchain_core.language_models import BaseChatModel
from pydantic import ValidationError

from studcom.config import get_settings
from studcom.core.exceptions import QuotaExceededError, UpstreamAPIError
from studcom.core.llm_provider import create_notes_llm, message_text, wrap_llm_error
from studcom.features.notes.schemas import NotesFragment

logger = logging.getLogger(__name__)

RETRY_PREFIX = "SYSTEM: Return only valid JSON.\n\n"
PREVIEW_CHARS = 2000

NOTES_PROMPT = """You are an expert academic note-making assistant. Return ONLY valid JSON that follows the schema below. Do NOT include markdown, code fences, explanations or any extra text.

REQUIRED TOP-LEVEL KEYS:
- title (string)
- tl_dr (string)
- summary (string)
- sections (array of objects with: heading (string), summary (string), bullets (array of strings), important_quotes (array of strings))
- action_items (array of strings)
- questions (array of strings)
- flashcards (array of {{question, answer}})

If anything is missing, include the key with an empty string or empty array.

Text:
---
{text}
---"""

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


@dataclass
class FragmentParseError:
    """Why a model reply could not become a NotesFragment."""
    message: str
    preview: str = ""


def sanitize_model_output(raw: str) -> str:
    """Strip fences and backticks, then keep the outermost {...} span if any."""
    text = _FENCE_RE.sub("", raw or "").strip()
    text = text.strip("`").strip()

    first = text.find("{")
    last = text.rfind("}")
    if first != -1 and last > first:
        text = text[first:last + 1]
    return text.strip()


def parse_notes_fragment(raw: str) -> NotesFragment | FragmentParseError:
    """Parse and validate one model reply. Never raises on bad output."""
    if not raw or not raw.strip():
        return FragmentParseError("No text to parse")

    cleaned = sanitize_model_output(raw)
    preview = raw[:PREVIEW_CHARS]
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        return FragmentParseError(f"Failed to parse model JSON output: {e}", preview)

    if not isinstance(data, dict):
        return FragmentParseError(f"Expected a JSON object, got {type(data).__name__}", preview)

    try:
        return NotesFragment.model_validate(data)
    except ValidationError as e:
        return FragmentParseError(f"Schema validation failed: {e.error_count()} error(s)", preview)


class NotesGenerator:
    """Calls the chat model for one chunk at a time."""

    def __init__(self, llm: BaseChatModel | None = None, debug_dir: str | Path | None = None):
        self._llm = llm
        self.debug_dir = Path(debug_dir or get_settings().NOTES_DEBUG_DIR)

    @property
    def llm(self) -> BaseChatModel:
        if self._llm is None:
            self._llm = create_notes_llm()
        return self._llm

    async def _attempt(self, prompt: str) -> NotesFragment | FragmentParseError:
        model = self.llm
        try:
            result = await model.ainvoke(prompt)
        except Exception as e:
            raise wrap_llm_error(e) from e
        return parse_notes_fragment(message_text(result.content))

    async def _attempt_or_error(self, prompt: str) -> NotesFragment | FragmentParseError:
        """One model call; upstream errors become a parse-style failure, quota re-raises."""
        try:
            return await self._attempt(prompt)
        except QuotaExceededError:
            raise
        except UpstreamAPIError as e:
            return FragmentParseError(e.message)

    async def generate_fragment(
        self,
        chunk: str,
        job_id: str = "adhoc",
        index: int = 0,
    ) -> NotesFragment | None:
        """Notes for one chunk, or None if both attempts failed.

        Raises:
            QuotaExceededError: The provider is out of quota; the job should stop.
        """
        prompt = NOTES_PROMPT.format(text=chunk)

        first = await self._attempt_or_error(prompt)
        if isinstance(first, NotesFragment):
            return first
        logger.warning(f"⚠️ Chunk {index} primary call failed: {first.message}")

        second = await self._attempt_or_error(RETRY_PREFIX + prompt)
        if isinstance(second, NotesFragment):
            return second
        logger.warning(f"⚠️ Chunk {index} retry failed: {second.message}")

        self._write_debug_dump(job_id, index, chunk, first, second)
        return None

    def _write_debug_dump(
        self,
        job_id: str,
        index: int,
        chunk: str,
        first: FragmentParseError,
        second: FragmentParseError,
    ) -> None:
        path = self.debug_dir / f"{job_id}-chunk-{index}-error.json"
        payload = {
            "jobId": job_id,
            "chunkIndex": index,
            "errorPrimary": first.message,
            "errorRetry": second.message,
            "outputPreview": second.preview or first.preview,
            "chunkPreview": chunk[:PREVIEW_CHARS],
            "ts": int(time.time() * 1000),
        }
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed writing debug file {path}: {e}")
