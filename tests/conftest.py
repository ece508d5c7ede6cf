"""Shared test fixtures for whichlang tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from whichlang.config import BayesConfig, KNNConfig, NetworkConfig, SVMConfig, TreeConfig
from whichlang.kernels import Kernel
from whichlang.tokens import count_tokens, sample_freqs

PYTHON_SOURCES = [
    "def add(a, b):\n    return a + b\n",
    "class Greeter:\n    def __init__(self, name):\n        self.name = name\n",
    "import os\n\ndef main():\n    print(os.getcwd())\n",
    "for item in items:\n    if item:\n        print(item)\n",
]

C_SOURCES = [
    "int add(int a, int b) {\n    return a + b;\n}\n",
    '#include <stdio.h>\n\nint main(void) {\n    printf("hi\\n");\n    return 0;\n}\n',
    "void swap(int *a, int *b) {\n    int t = *a;\n    *a = *b;\n    *b = t;\n}\n",
    "static int count = 0;\n\nvoid bump(void) {\n    count++;\n}\n",
]


@pytest.fixture
def example_samples() -> dict:
    """Two languages with one tiny sample each."""
    return {
        "Python": [{"def": 3, "self": 2}],
        "C": [{"int": 4, "void": 1}],
    }


@pytest.fixture
def example_query() -> dict:
    return {"def": 1, "self": 1}


@pytest.fixture
def source_counts() -> dict:
    """Token counts of a small Python/C corpus."""
    return {
        "Python": [count_tokens(src) for src in PYTHON_SOURCES],
        "C": [count_tokens(src) for src in C_SOURCES],
    }


@pytest.fixture
def source_freqs(source_counts: dict) -> dict:
    return sample_freqs(source_counts)


@pytest.fixture
def sample_dir(tmp_path: Path) -> Path:
    """A language-per-directory sample tree on disk."""
    root = tmp_path / "samples"
    for lang, sources, ext in (("Python", PYTHON_SOURCES, ".py"), ("C", C_SOURCES, ".c")):
        lang_dir = root / lang
        lang_dir.mkdir(parents=True)
        for i, src in enumerate(sources):
            (lang_dir / f"sample{i}{ext}").write_text(src, encoding="utf-8")
    return root


@pytest.fixture
def fast_configs() -> dict:
    """Per-algorithm configurations small enough for unit tests."""
    return {
        "idtree": TreeConfig(workers=2),
        "knn": KNNConfig(),
        "gaussbayes": BayesConfig(),
        "svm": SVMConfig(kernels=(Kernel("linear"), Kernel("rbf", (1.0,)))),
        "neuralnet": NetworkConfig(step_sizes=(0.5,), max_iterations=200, initial_iterations=50),
    }
