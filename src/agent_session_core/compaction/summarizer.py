"""Event summarizers.

A summarizer turns a run of events into one compaction event whose
``actions.compaction`` covers the run's timestamp range.  Returning None
means "no summary"; the compaction engine then leaves the raw events as
the authoritative history.

Classes
-------
- BaseEventsSummarizer        — abstract summarizer
- ExtractiveEventsSummarizer  — offline TF-IDF sentence extraction
- LlmEventsSummarizer         — delegates to an external text generator
"""
from __future__ import annotations

import inspect
import math
import re
import time
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from typing import Union

from agent_session_core.session.event import (
    Content,
    Event,
    EventActions,
    EventCompaction,
    Part,
    new_invocation_id,
)

COMPACTION_AUTHOR = "system"

DEFAULT_PROMPT_TEMPLATE = (
    "The following is a conversation history between a user and an AI agent. "
    "Please summarize the conversation, focusing on key information and "
    "decisions made, as well as any unresolved questions or tasks. "
    "The summary should be concise and capture the essence of the interaction."
    "\n\n{conversation_history}"
)

TextGenerator = Callable[[str], Union[Awaitable[str], AsyncIterator[str]]]


def render_events_for_summary(events: Sequence[Event]) -> str:
    """Render the text parts of ``events`` as ``author: text`` lines.

    Compaction events and parts without text are skipped.
    """
    lines: list[str] = []
    for event in events:
        if event.is_compaction or event.content is None:
            continue
        for part in event.content.parts:
            if part.text:
                lines.append(f"{event.author or 'unknown'}: {part.text}")
    return "\n".join(lines)


def build_compaction_event(events: Sequence[Event], summary: str) -> Event:
    """Wrap ``summary`` in a compaction event covering ``events``."""
    compacted = Content(role="model", parts=[Part.from_text(summary)])
    return Event(
        invocation_id=new_invocation_id(),
        author=COMPACTION_AUTHOR,
        timestamp=max(time.time(), events[-1].timestamp),
        content=compacted,
        actions=EventActions(
            compaction=EventCompaction(
                start_timestamp=events[0].timestamp,
                end_timestamp=events[-1].timestamp,
                compacted_content=compacted,
            )
        ),
    )


class BaseEventsSummarizer(ABC):
    """Compacts a chronological run of events into one event."""

    @abstractmethod
    async def maybe_summarize_events(self, events: Sequence[Event]) -> Event | None:
        """Return a compaction event for ``events``, or None to skip."""


# ---------------------------------------------------------------------------
# Extractive
# ---------------------------------------------------------------------------

_STOP_WORDS: frozenset[str] = frozenset(
    {
        "a", "an", "the", "is", "it", "in", "on", "at", "to", "for",
        "of", "and", "or", "but", "not", "with", "as", "by", "from",
        "this", "that", "was", "are", "be", "been", "have", "has",
        "do", "did", "will", "would", "could", "should", "may", "can",
        "i", "you", "we", "they", "he", "she", "its", "their", "our",
        "so", "if", "then", "just", "also", "about", "there", "here",
        "up", "out", "when", "what", "which", "who", "how", "all",
    }
)


def _tokenize(text: str) -> list[str]:
    tokens = re.findall(r"[a-z0-9]+", text.lower())
    return [t for t in tokens if t not in _STOP_WORDS and len(t) > 1]


def _split_sentences(text: str) -> list[str]:
    raw = re.split(r"(?<=[.!?])\s+", text.strip())
    return [s.strip() for s in raw if s.strip()]


def _estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per ~4 characters."""
    return max(1, len(text) // 4)


def _idf(documents: list[list[str]]) -> dict[str, float]:
    document_freq: Counter[str] = Counter()
    for tokens in documents:
        document_freq.update(set(tokens))
    total = len(documents)
    return {term: math.log((1 + total) / (1 + df)) + 1 for term, df in document_freq.items()}


def _tfidf(tokens: list[str], idf: dict[str, float]) -> float:
    if not tokens:
        return 0.0
    counts = Counter(tokens)
    return sum((count / len(tokens)) * idf.get(term, 0.0) for term, count in counts.items())


class ExtractiveEventsSummarizer(BaseEventsSummarizer):
    """Summarize events offline by picking their most informative sentences.

    Every text part of every event is split into sentences.  Sentences are
    scored by TF-IDF over the whole run, weighted so that the first sentence
    of an event counts fully and its last counts half.  The best sentences
    are taken greedily within ``max_tokens`` and emitted in their original
    order, each prefixed with its author.

    Parameters
    ----------
    max_tokens:
        Approximate token budget of the summary.
    max_sentences_per_event:
        Cap on sentences drawn from a single event.
    """

    def __init__(self, max_tokens: int = 256, max_sentences_per_event: int = 3) -> None:
        if max_tokens < 1:
            raise ValueError(f"max_tokens must be >= 1, got {max_tokens}")
        self.max_tokens = max_tokens
        self.max_sentences_per_event = max_sentences_per_event

    def summarize_text(self, events: Sequence[Event]) -> str:
        """Return the extractive summary text of ``events`` ('' when no text)."""
        # (event index, sentence index, author, sentence)
        sentences: list[tuple[int, int, str, str]] = []
        per_event_totals: dict[int, int] = {}
        for event_index, event in enumerate(events):
            if event.is_compaction or event.content is None:
                continue
            event_sentences = _split_sentences(event.content.text())
            per_event_totals[event_index] = len(event_sentences)
            for sentence_index, sentence in enumerate(event_sentences):
                sentences.append((event_index, sentence_index, event.author, sentence))
        if not sentences:
            return ""

        token_lists = [_tokenize(sentence) for _, _, _, sentence in sentences]
        idf = _idf(token_lists)

        scored: list[tuple[float, int, int, str, str]] = []
        for (event_index, sentence_index, author, sentence), tokens in zip(sentences, token_lists):
            total = per_event_totals[event_index]
            weight = 1.0 if total <= 1 else 1.0 - 0.5 * (sentence_index / (total - 1))
            scored.append((_tfidf(tokens, idf) * weight, event_index, sentence_index, author, sentence))
        scored.sort(key=lambda item: item[0], reverse=True)

        selected: list[tuple[int, int, str, str]] = []
        used = 0
        per_event_counts: Counter[int] = Counter()
        for _, event_index, sentence_index, author, sentence in scored:
            if used >= self.max_tokens:
                break
            if per_event_counts[event_index] >= self.max_sentences_per_event:
                continue
            cost = _estimate_tokens(sentence)
            if used + cost > self.max_tokens and selected:
                continue
            selected.append((event_index, sentence_index, author, sentence))
            per_event_counts[event_index] += 1
            used += cost

        selected.sort(key=lambda item: (item[0], item[1]))
        return "\n".join(f"{author}: {sentence}" for _, _, author, sentence in selected)

    async def maybe_summarize_events(self, events: Sequence[Event]) -> Event | None:
        if not events:
            return None
        summary = self.summarize_text(events)
        if not summary:
            return None
        return build_compaction_event(events, summary)


# ---------------------------------------------------------------------------
# LLM-backed
# ---------------------------------------------------------------------------


class LlmEventsSummarizer(BaseEventsSummarizer):
    """Summarize events with an external text generator.

    Parameters
    ----------
    generate:
        ``async (prompt) -> str``, or a function returning an async iterator
        of text chunks that are concatenated.
    prompt_template:
        Template containing a ``{conversation_history}`` placeholder.

    Errors raised by ``generate`` propagate to the caller; the compaction
    engine catches them.
    """

    def __init__(
        self,
        generate: TextGenerator,
        prompt_template: str = DEFAULT_PROMPT_TEMPLATE,
    ) -> None:
        if "{conversation_history}" not in prompt_template:
            raise ValueError("prompt_template must contain '{conversation_history}'")
        self._generate = generate
        self.prompt_template = prompt_template

    def build_prompt(self, events: Sequence[Event]) -> str:
        history = render_events_for_summary(events)
        return self.prompt_template.replace("{conversation_history}", history)

    async def maybe_summarize_events(self, events: Sequence[Event]) -> Event | None:
        if not events:
            return None
        if not render_events_for_summary(events).strip():
            return None

        output = self._generate(self.build_prompt(events))
        if inspect.isawaitable(output):
            summary = await output
        else:
            chunks = [chunk async for chunk in output]
            summary = "".join(chunks)

        if not summary or not summary.strip():
            return None
        return build_compaction_event(events, summary)
