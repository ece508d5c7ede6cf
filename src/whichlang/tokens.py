"""Tokenization of source files and reading of labeled sample directories.

The tokenizer turns raw source text into token counts. Four kinds of
tokens are counted:

- Mixed words: whitespace-separated fields made of more than one character
  class (e.g. ``is123`` or ``foo();``).
- Runs: maximal runs of a single character class (letters, digits, or
  symbols), e.g. ``foo``, ``123`` or ``();``.
- Line-initial tokens: the first mixed word and first run of each line,
  prefixed with ``"\\n"``.
- Line-final tokens: the last mixed word and last run of each line,
  suffixed with ``"\\n"``.

A sample directory holds one sub-directory per language, each containing
source files. Hidden entries are ignored and names are read in sorted
order.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping
from enum import Enum
from pathlib import Path

from .vectors import Frequencies, TokenCounts, l1_normalize

logger = logging.getLogger(__name__)

SampleCounts = dict[str, list[TokenCounts]]


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

class CharClass(Enum):
    LETTER = "letter"
    DIGIT = "digit"
    SPACE = "space"
    SYMBOL = "symbol"


def char_class(ch: str) -> CharClass:
    if ch.isalpha():
        return CharClass.LETTER
    if ch.isdigit():
        return CharClass.DIGIT
    if ch.isspace():
        return CharClass.SPACE
    return CharClass.SYMBOL


def _is_single_class(word: str) -> bool:
    if not word:
        return True
    first = char_class(word[0])
    return all(char_class(ch) == first for ch in word)


def mixed_words(text: str) -> list[str]:
    """Whitespace-separated fields containing more than one character class."""
    return [f for f in text.split() if not _is_single_class(f)]


def class_runs(text: str) -> list[str]:
    """Maximal runs of letters, digits, or symbols (whitespace separates runs)."""
    runs: list[str] = []
    current: list[str] = []
    last = CharClass.SPACE
    for ch in text:
        cls = char_class(ch)
        if cls == last:
            current.append(ch)
            continue
        if last != CharClass.SPACE and current:
            runs.append("".join(current))
        current = [ch]
        last = cls
    if last != CharClass.SPACE and current:
        runs.append("".join(current))
    return runs


def line_boundary_tokens(text: str) -> list[str]:
    """Line-initial (``"\\n" + tok``) and line-final (``tok + "\\n"``) tokens."""
    result: list[str] = []
    for line in text.split("\n"):
        fields = line.split()
        if not fields:
            continue
        for position, field_text in (("initial", fields[0]), ("final", fields[-1])):
            for found in (class_runs(field_text), mixed_words(field_text)):
                if not found:
                    continue
                if position == "initial":
                    result.append("\n" + found[0])
                else:
                    result.append(found[-1] + "\n")
    return result


def count_tokens(text: str) -> TokenCounts:
    """Count the tokens of a source document.

    Args:
        text: Raw source text.

    Returns:
        Mapping of token to number of occurrences.
    """
    counts: Counter[str] = Counter()
    counts.update(mixed_words(text))
    counts.update(class_runs(text))
    counts.update(line_boundary_tokens(text))
    return dict(counts)


def to_freqs(counts: Mapping[str, int]) -> Frequencies:
    """Convert counts to frequencies (count divided by the document's total)."""
    return l1_normalize(counts)


# ---------------------------------------------------------------------------
# Sample directories
# ---------------------------------------------------------------------------

def _list_entries(directory: Path, want_dirs: bool) -> list[Path]:
    entries = [
        entry for entry in directory.iterdir()
        if entry.is_dir() == want_dirs and not entry.name.startswith(".")
    ]
    return sorted(entries, key=lambda p: p.name)


def read_sample_counts(sample_dir: str | Path) -> SampleCounts:
    """Tokenize every sample file in a language-per-directory tree.

    Args:
        sample_dir: Directory with one sub-directory per language.

    Returns:
        Mapping of language name to the token counts of each of its files.

    Raises:
        FileNotFoundError: If *sample_dir* does not exist.
        NotADirectoryError: If *sample_dir* is not a directory.
    """
    root = Path(sample_dir)
    if not root.exists():
        raise FileNotFoundError(f"Sample directory not found: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"Not a directory: {root}")

    result: SampleCounts = {}
    for lang_dir in _list_entries(root, want_dirs=True):
        files = _list_entries(lang_dir, want_dirs=False)
        result[lang_dir.name] = [
            count_tokens(path.read_text(encoding="utf-8", errors="replace"))
            for path in files
        ]
        logger.debug("Read %d samples for %s", len(files), lang_dir.name)
    return result


def num_tokens(samples: Mapping[str, list[Mapping[str, int]]]) -> int:
    """Number of distinct tokens across every document."""
    seen: set[str] = set()
    for lang_samples in samples.values():
        for sample in lang_samples:
            seen.update(sample)
    return len(seen)


def prune(samples: Mapping[str, list[TokenCounts]], min_docs: int) -> SampleCounts:
    """Drop tokens which appear in *min_docs* documents or fewer.

    Returns:
        A new mapping; *samples* is left untouched.
    """
    doc_count: Counter[str] = Counter()
    for lang_samples in samples.values():
        for sample in lang_samples:
            doc_count.update(sample.keys())

    keep = {token for token, count in doc_count.items() if count > min_docs}
    return {
        lang: [{t: c for t, c in sample.items() if t in keep} for sample in lang_samples]
        for lang, lang_samples in samples.items()
    }


def sample_freqs(samples: Mapping[str, list[TokenCounts]]) -> dict[str, list[Frequencies]]:
    """Convert every document's counts to frequencies."""
    return {
        lang: [to_freqs(sample) for sample in lang_samples]
        for lang, lang_samples in samples.items()
    }


def subsample_directory(sample_dir: str | Path, num_lines: int) -> list[Path]:
    """Write a ``num_lines``-line excerpt next to every sample file.

    The excerpt is taken from the middle of the file and saved as
    ``<stem>_subsample_<num_lines><suffix>``. Files shorter than
    *num_lines* are skipped.

    Returns:
        Paths of the files written.

    Raises:
        ValueError: If *num_lines* is less than 1.
    """
    if num_lines < 1:
        raise ValueError("num_lines must be at least 1")

    written: list[Path] = []
    for lang_dir in _list_entries(Path(sample_dir), want_dirs=True):
        for path in _list_entries(lang_dir, want_dirs=False):
            lines = path.read_text(encoding="utf-8", errors="replace").split("\n")
            if len(lines) < num_lines:
                logger.info("Skipping %s (%d lines)", path, len(lines))
                continue
            start = (len(lines) - num_lines) // 2
            target = path.with_name(f"{path.stem}_subsample_{num_lines}{path.suffix}")
            target.write_text("\n".join(lines[start : start + num_lines]), encoding="utf-8")
            written.append(target)
    return written
