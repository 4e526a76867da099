"""Best-effort classification of artifacts into identity subject/process.

Classification is a strategy table: the first rule whose predicate matches
the artifact's filename / MIME type produces the ``Classification``.  The
last rule always matches.  Text classifiers are external collaborators
(e.g. an LLM summarizer); any failure falls back to deterministic values
and never aborts an entry run.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import PurePath
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"
MIME_TYPES: dict[str, str] = {
    ".txt": "text/plain",
    ".json": "application/json",
    ".md": "text/markdown",
}
TEXT_EXTENSIONS = frozenset(MIME_TYPES)

BINARY_PROCESS = "binary-upload"
SUMMARY_PREFIX_CHARS = 100
LONG_TEXT_THRESHOLD = 1000


def mime_type_for(filename: str) -> str:
    """MIME type used when uploading *filename*."""
    return MIME_TYPES.get(PurePath(filename).suffix.lower(), DEFAULT_MIME_TYPE)


class Classification(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject: str
    process: str


@runtime_checkable
class TextClassifier(Protocol):
    async def summarize(self, text: str) -> str: ...

    async def tag(self, text: str) -> str: ...


class FallbackClassifier:
    """Deterministic classifier used when no real one is available."""

    async def summarize(self, text: str) -> str:
        return fallback_summary(text)

    async def tag(self, text: str) -> str:
        return fallback_tag(text)


def fallback_summary(text: str) -> str:
    return f"AI Summary: {text[:SUMMARY_PREFIX_CHARS]}..."


def fallback_tag(text: str) -> str:
    return "AI-Summarized-Web-Page" if len(text) > LONG_TEXT_THRESHOLD else "File-Upload-Hashed"


# ---------------------------------------------------------------------------
# Strategy table
# ---------------------------------------------------------------------------

Predicate = Callable[[str, str], bool]
Strategy = Callable[[bytes, str, TextClassifier], Awaitable[Classification]]


@dataclass(frozen=True)
class ClassificationRule:
    name: str
    matches: Predicate
    classify: Strategy


def _is_text(filename: str, mime_type: str) -> bool:
    return PurePath(filename).suffix.lower() in TEXT_EXTENSIONS or mime_type.startswith("text/")


async def _classify_text(
    data: bytes, filename: str, classifier: TextClassifier
) -> Classification:
    text = data.decode("utf-8", errors="replace")
    try:
        subject = await classifier.summarize(text) or fallback_summary(text)
    except Exception as exc:  # best-effort collaborator
        logger.warning("Summarizer failed for %s, using fallback: %s", filename, exc)
        subject = fallback_summary(text)
    try:
        process = await classifier.tag(text) or fallback_tag(text)
    except Exception as exc:  # best-effort collaborator
        logger.warning("Tagger failed for %s, using fallback: %s", filename, exc)
        process = fallback_tag(text)
    return Classification(subject=subject, process=process)


async def _classify_binary(
    data: bytes, filename: str, classifier: TextClassifier
) -> Classification:
    return Classification(subject=filename, process=BINARY_PROCESS)


CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule("text", _is_text, _classify_text),
    ClassificationRule("default", lambda filename, mime_type: True, _classify_binary),
)


async def classify_artifact(
    data: bytes,
    filename: str,
    *,
    mime_type: str | None = None,
    classifier: TextClassifier | None = None,
    rules: Sequence[ClassificationRule] = CLASSIFICATION_RULES,
) -> Classification:
    """Derive ``subject`` and ``process`` for an artifact."""
    mime = mime_type or mime_type_for(filename)
    active = classifier or FallbackClassifier()
    for rule in rules:
        if rule.matches(filename, mime):
            logger.debug("Classifying %s with rule %r", filename, rule.name)
            return await rule.classify(data, filename, active)
    return await _classify_binary(data, filename, active)
