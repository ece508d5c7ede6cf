"""Error kinds raised by the classifiers, the registry and the trainers."""

from __future__ import annotations


class ModelDecodeError(ValueError):
    """A persisted model could not be decoded.

    Raised for invalid JSON, missing fields, inconsistent dimensions, or
    non-finite parameters. Fatal for the load that triggered it.
    """


class UnknownAlgorithmError(ValueError):
    """The requested algorithm name is not registered."""

    def __init__(self, name: str, known: list[str]) -> None:
        self.name = name
        self.known = known
        super().__init__(f"Unknown algorithm: {name!r}. Known: {', '.join(known)}")


class KernelConfigError(ValueError):
    """A kernel was built with an unknown type or a wrong parameter count."""
