"""Phrase Generator - turns a generation request into ten short taglines.

One LLM call for the main batch. The raw text is cleaned line by line; if
fewer than MIN_ACCEPTABLE lines survive the batch is rejected, otherwise a
single complement call tops the batch up to PHRASE_COUNT.
"""
import logging
import re
from typing import List, Optional

from models import GeneratedPhrase, GenerationRequest
from services.prompt_builder import (
    PHRASE_COUNT,
    SYSTEM_PROMPT,
    build_prompt,
    build_complement_prompt,
)
from utils import llm_chat

logger = logging.getLogger(__name__)

MIN_ACCEPTABLE = 8
MAX_PHRASE_LENGTH = 80

_NUMBERED_RE = re.compile(r"^\d+[.)\-:]")
_PREAMBLE_RE = re.compile(
    r"^(voici|voilà|examples?|phrases?|here|aquí|hier|ecco|aqui|exemples?)",
    re.IGNORECASE,
)
_BULLET_RE = re.compile(r"^[-*•·]\s+")
_QUOTES = "\"'“”«»‘’„"


class PhraseGenerationError(Exception):
    """Generation failed for a reason not covered by a more specific error."""
    pass


class GenerationQualityError(PhraseGenerationError):
    """The model answered but too few usable phrases came back."""
    pass


class LLMConfigurationError(PhraseGenerationError):
    pass


class LLMQuotaError(PhraseGenerationError):
    pass


class LLMConnectionError(PhraseGenerationError):
    pass


def _clean_line(line: str) -> str:
    line = line.strip()
    line = _BULLET_RE.sub("", line)
    if len(line) >= 2 and line[0] in _QUOTES and line[-1] in _QUOTES:
        line = line[1:-1].strip()
    return line


def clean_output(raw: str, exclude: Optional[List[str]] = None, limit: int = PHRASE_COUNT) -> List[str]:
    """Extract usable phrases from raw model text, deduplicated case-insensitively."""
    seen = {p.casefold() for p in (exclude or [])}
    phrases = []
    for line in (raw or "").splitlines():
        text = _clean_line(line)
        if not text:
            continue
        if len(text) > MAX_PHRASE_LENGTH:
            continue
        if _NUMBERED_RE.match(text) or _PREAMBLE_RE.match(text) or text.startswith("#"):
            continue
        key = text.casefold()
        if key in seen:
            continue
        seen.add(key)
        phrases.append(text)
        if len(phrases) >= limit:
            break
    return phrases


def map_llm_error(error: Exception) -> PhraseGenerationError:
    message = str(error).lower()
    if "api key" in message or "api_key" in message or "permission" in message:
        return LLMConfigurationError("LLM API key is missing or invalid")
    if "quota" in message or "limit" in message or "429" in message:
        return LLMQuotaError("LLM quota exceeded, try again later")
    if "network" in message or "fetch" in message or "connect" in message or "timeout" in message:
        return LLMConnectionError("Could not reach the LLM service")
    return PhraseGenerationError(f"Generation failed: {error}")


class PhraseGenerator:
    """Generates taglines through the LLM client."""

    def __init__(self, chat=None):
        self._chat = chat

    async def _complete(self, prompt: str) -> str:
        try:
            chat = self._chat or llm_chat.chat
            return await chat(SYSTEM_PROMPT, prompt)
        except PhraseGenerationError:
            raise
        except Exception as e:
            logger.error(f"LLM call failed: {e}")
            raise map_llm_error(e) from e

    async def generate(self, request: GenerationRequest) -> List[GeneratedPhrase]:
        prompt = build_prompt(request.concept, request.tone, request.language)
        raw = await self._complete(prompt)
        phrases = clean_output(raw)

        if len(phrases) < MIN_ACCEPTABLE:
            logger.warning(f"Only {len(phrases)} usable phrases returned for tone {request.tone.value}")
            raise GenerationQualityError(
                f"Generated content did not meet quality requirements ({len(phrases)}/{PHRASE_COUNT})"
            )

        if len(phrases) < PHRASE_COUNT:
            missing = PHRASE_COUNT - len(phrases)
            complement_prompt = build_complement_prompt(
                request.concept, request.tone, request.language, phrases, missing
            )
            try:
                extra_raw = await self._complete(complement_prompt)
                phrases.extend(clean_output(extra_raw, exclude=phrases, limit=missing))
            except PhraseGenerationError as e:
                # The main batch is already acceptable
                logger.warning(f"Complement generation failed, keeping {len(phrases)} phrases: {e}")

        return [
            GeneratedPhrase(id=f"phrase-{i + 1}", text=text, tone=request.tone)
            for i, text in enumerate(phrases[:PHRASE_COUNT])
        ]


phrase_generator = PhraseGenerator()
