"""Tests for tokenization and sample directory handling."""

from __future__ import annotations

from pathlib import Path

import pytest

from whichlang.tokens import (
    CharClass,
    char_class,
    class_runs,
    count_tokens,
    mixed_words,
    num_tokens,
    prune,
    read_sample_counts,
    sample_freqs,
    subsample_directory,
    to_freqs,
)


class TestCharClass:
    def test_classes(self):
        assert char_class("a") is CharClass.LETTER
        assert char_class("7") is CharClass.DIGIT
        assert char_class(" ") is CharClass.SPACE
        assert char_class("\n") is CharClass.SPACE
        assert char_class("{") is CharClass.SYMBOL


class TestTokenizer:
    """Tests for count_tokens and its building blocks."""

    def test_single_class_runs(self):
        assert class_runs("foo();  bar") == ["foo", "();", "bar"]

    def test_mixed_words_need_two_classes(self):
        assert mixed_words("foo(); bar 123 is123") == ["foo();", "is123"]

    def test_line_boundary_tokens(self):
        counts = count_tokens("x = 1\ny")
        assert counts == {
            "x": 1, "=": 1, "1": 1, "y": 1,
            "\nx": 1, "1\n": 1, "\ny": 1, "y\n": 1,
        }

    def test_mixed_word_line(self):
        counts = count_tokens("foo();")
        assert counts == {
            "foo();": 1, "foo": 1, "();": 1,
            "\nfoo": 1, "\nfoo();": 1, "();\n": 1, "foo();\n": 1,
        }

    def test_blank_lines_add_nothing(self):
        assert count_tokens("a\n\n\n") == count_tokens("a")

    def test_empty_text(self):
        assert count_tokens("") == {}

    def test_repeated_tokens_counted(self):
        counts = count_tokens("int a; int b;")
        assert counts["int"] == 2
        assert counts[";"] == 2

    def test_to_freqs_sums_to_one(self):
        freqs = to_freqs(count_tokens("def f(x):\n    return x\n"))
        assert sum(freqs.values()) == pytest.approx(1.0)

    def test_to_freqs_empty(self):
        assert to_freqs({}) == {}


class TestSampleDirectories:
    def test_read_sample_counts(self, sample_dir: Path):
        counts = read_sample_counts(sample_dir)
        assert list(counts) == ["C", "Python"]
        assert len(counts["C"]) == 4
        assert len(counts["Python"]) == 4
        assert counts["Python"][0]["def"] == 1

    def test_hidden_entries_skipped(self, sample_dir: Path):
        (sample_dir / ".git").mkdir()
        (sample_dir / "Python" / ".DS_Store").write_text("junk", encoding="utf-8")
        counts = read_sample_counts(sample_dir)
        assert list(counts) == ["C", "Python"]
        assert len(counts["Python"]) == 4

    def test_missing_directory_raises(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            read_sample_counts(tmp_path / "nope")

    def test_file_instead_of_directory_raises(self, tmp_path: Path):
        path = tmp_path / "file.txt"
        path.write_text("x", encoding="utf-8")
        with pytest.raises(NotADirectoryError):
            read_sample_counts(path)


class TestPruning:
    def test_prune_removes_rare_tokens(self):
        samples = {
            "A": [{"common": 2, "rare": 1}, {"common": 1}],
            "B": [{"common": 5, "other": 1}],
        }
        pruned = prune(samples, 1)
        assert pruned == {"A": [{"common": 2}, {"common": 1}], "B": [{"common": 5}]}

    def test_prune_leaves_input_untouched(self):
        samples = {"A": [{"x": 1}]}
        prune(samples, 5)
        assert samples == {"A": [{"x": 1}]}

    def test_prune_zero_keeps_everything(self, source_counts):
        assert prune(source_counts, 0) == source_counts

    def test_num_tokens(self):
        assert num_tokens({"A": [{"x": 1, "y": 1}], "B": [{"y": 2, "z": 1}]}) == 3

    def test_sample_freqs(self):
        freqs = sample_freqs({"A": [{"x": 1, "y": 3}]})
        assert freqs == {"A": [{"x": 0.25, "y": 0.75}]}


class TestSubsample:
    def test_writes_middle_lines(self, tmp_path: Path):
        lang_dir = tmp_path / "Go"
        lang_dir.mkdir()
        (lang_dir / "main.go").write_text("\n".join(str(i) for i in range(10)), encoding="utf-8")

        written = subsample_directory(tmp_path, 4)

        target = lang_dir / "main_subsample_4.go"
        assert written == [target]
        assert target.read_text(encoding="utf-8") == "3\n4\n5\n6"

    def test_short_files_skipped(self, tmp_path: Path):
        lang_dir = tmp_path / "Go"
        lang_dir.mkdir()
        (lang_dir / "short.go").write_text("a\nb", encoding="utf-8")
        assert subsample_directory(tmp_path, 5) == []

    def test_invalid_line_count(self, tmp_path: Path):
        with pytest.raises(ValueError):
            subsample_directory(tmp_path, 0)
