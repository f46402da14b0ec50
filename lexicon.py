"""
Pronunciation lexicon loading.

Parses a CMUdict-style pronunciation dictionary and a common-word frequency
list into an immutable Lexicon: word -> phonemes, the five-phoneme candidate
words a round can pick its target from, and the sorted phoneme alphabet.

The dictionary is parsed in batches so a host can report progress and keep
serving other work between batches. Batching never changes the result.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Tuple

from errors import DataLoadError

logger = logging.getLogger(__name__)

WORD_LENGTH = 5
LINES_PER_BATCH = 2000
COMMENT_PREFIX = ";;;"

# WORD, two or more spaces, phoneme list
RECORD_RE = re.compile(r"^(\S+) {2,}(\S.*)$")
STRESS_DIGITS = "0123456789"


@dataclass(frozen=True)
class Lexicon:
    entries: Mapping[str, Tuple[str, ...]]
    candidates: Tuple[str, ...]
    alphabet: Tuple[str, ...]

    def lookup(self, word: str) -> Optional[Tuple[str, ...]]:
        """Phonemes for a word (any case), or None if it is not in the dictionary."""
        return self.entries.get(word.strip().upper())

    def __contains__(self, word) -> bool:
        return isinstance(word, str) and self.lookup(word) is not None

    def __len__(self) -> int:
        return len(self.entries)


def parse_record(line):
    """
    Parse one dictionary line.

    Returns (WORD, phonemes) for a record, or None for comments, blank
    lines and lines that are not a WORD/phonemes pair.
    """
    line = line.strip()
    if not line or line.startswith(COMMENT_PREFIX):
        return None
    match = RECORD_RE.match(line)
    if not match:
        return None
    word, phoneme_str = match.groups()
    phonemes = tuple(p.rstrip(STRESS_DIGITS) for p in phoneme_str.split())
    phonemes = tuple(p for p in phonemes if p)
    if not phonemes:
        return None
    return word.upper(), phonemes


def _is_record_candidate(line):
    line = line.strip()
    return bool(line) and not line.startswith(COMMENT_PREFIX)


class LexiconBuilder:
    """Accumulates dictionary batches into a Lexicon."""

    def __init__(self):
        self.frequency_words = set()
        self.entries = {}
        self.skipped_lines = 0
        self._phonemes = set()
        # Insertion-ordered, so duplicates keep their first position
        self._candidate_order = {}

    def add_frequency_words(self, lines):
        for line in lines:
            word = line.strip().upper()
            if word:
                self.frequency_words.add(word)

    def feed(self, lines):
        for line in lines:
            record = parse_record(line)
            if record is None:
                if _is_record_candidate(line):
                    self.skipped_lines += 1
                continue
            word, phonemes = record
            self.entries[word] = phonemes
            self._phonemes.update(phonemes)
            if len(phonemes) == WORD_LENGTH and word in self.frequency_words:
                self._candidate_order.setdefault(word, None)

    def build(self) -> Lexicon:
        # A later duplicate may have replaced a five-phoneme entry
        candidates = tuple(
            w for w in self._candidate_order if len(self.entries[w]) == WORD_LENGTH
        )
        if not candidates:
            raise DataLoadError("No common five-phoneme words found in the dictionary")

        lexicon = Lexicon(
            entries=MappingProxyType(dict(self.entries)),
            candidates=candidates,
            alphabet=tuple(sorted(self._phonemes)),
        )
        logger.info(
            "Dictionary loaded: %s words, %s common %s-phoneme words, %s phonemes (%s malformed lines skipped)",
            len(lexicon.entries), len(candidates), WORD_LENGTH, len(lexicon.alphabet), self.skipped_lines,
        )
        return lexicon


def _read_lines(source, name):
    try:
        if isinstance(source, str):
            return source.splitlines()
        return [line.rstrip("\r\n") for line in source]
    except (OSError, UnicodeDecodeError) as e:
        raise DataLoadError(f"Could not read {name} source: {e}") from e


def _batches(lines, batch_size):
    """Yield (batch, fraction of lines processed once the batch is done)."""
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    total = len(lines)
    for start in range(0, total, batch_size):
        end = min(start + batch_size, total)
        yield lines[start:end], end / total


def _start(dictionary_source, frequency_source):
    builder = LexiconBuilder()
    builder.add_frequency_words(_read_lines(frequency_source, "frequency"))
    logger.info("Frequency list loaded: %s words", len(builder.frequency_words))
    return builder, _read_lines(dictionary_source, "dictionary")


def load(
    dictionary_source,
    frequency_source,
    batch_size: int = LINES_PER_BATCH,
    yield_point: Optional[Callable[[float], None]] = None,
) -> Lexicon:
    """
    Build a Lexicon from a dictionary source and a frequency source.

    Args:
        dictionary_source: Text or iterable of CMUdict-style lines
        frequency_source: Text or iterable of words, one per line
        batch_size: Dictionary lines parsed between yield points
        yield_point: Called with the fraction of lines processed after
            every batch, in file order

    Returns:
        The loaded Lexicon

    Raises:
        DataLoadError: A source could not be read or no candidate word exists
    """
    builder, lines = _start(dictionary_source, frequency_source)
    for batch, fraction in _batches(lines, batch_size):
        builder.feed(batch)
        if yield_point is not None:
            yield_point(fraction)
    return builder.build()


async def _default_async_yield(fraction):
    await asyncio.sleep(0)


async def load_async(
    dictionary_source,
    frequency_source,
    batch_size: int = LINES_PER_BATCH,
    yield_point=None,
) -> Lexicon:
    """Same as load(), awaiting yield_point(fraction) between batches."""
    if yield_point is None:
        yield_point = _default_async_yield
    builder, lines = _start(dictionary_source, frequency_source)
    for batch, fraction in _batches(lines, batch_size):
        builder.feed(batch)
        await yield_point(fraction)
    return builder.build()


def load_files(
    dictionary_path,
    frequency_path,
    batch_size: int = LINES_PER_BATCH,
    yield_point: Optional[Callable[[float], None]] = None,
) -> Lexicon:
    """Load a Lexicon from files on disk."""
    try:
        # CMUdict comment lines are not always valid UTF-8
        with open(Path(frequency_path), "r", encoding="utf-8", errors="replace") as f:
            frequency_text = f.read()
        with open(Path(dictionary_path), "r", encoding="utf-8", errors="replace") as f:
            dictionary_text = f.read()
    except OSError as e:
        raise DataLoadError(f"Could not read game data: {e}") from e
    return load(dictionary_text, frequency_text, batch_size=batch_size, yield_point=yield_point)
