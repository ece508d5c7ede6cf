"""Kernel functions for the SVM classifier.

A :class:`Kernel` computes the inner product of two vectors after an
implicit feature transformation:

- ``linear``: ``x·y``
- ``polynomial``: ``(x·y + c)^d`` with params ``[c, d]``
- ``rbf``: ``exp(-γ‖x−y‖²)`` with params ``[γ]``
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from .errors import KernelConfigError
from .vectors import dot, squared_distance


class KernelType(str, Enum):
    """Supported kernel families."""

    LINEAR = "linear"
    POLYNOMIAL = "polynomial"
    RBF = "rbf"


_PARAM_COUNTS: dict[KernelType, int] = {
    KernelType.LINEAR: 0,
    KernelType.POLYNOMIAL: 2,
    KernelType.RBF: 1,
}


@dataclass(frozen=True)
class Kernel:
    """A validated kernel descriptor.

    Args:
        type: Kernel family (a :class:`KernelType` or its string value).
        params: Numeric parameters; the count depends on the family.

    Raises:
        KernelConfigError: If the type is unknown, the parameter count is
            wrong, or a parameter is not finite.
    """

    type: KernelType
    params: tuple[float, ...] = ()

    def __post_init__(self) -> None:
        try:
            kind = KernelType(self.type)
        except ValueError:
            raise KernelConfigError(f"Unknown kernel type: {self.type!r}") from None
        try:
            params = tuple(float(p) for p in self.params)
        except (TypeError, ValueError) as exc:
            raise KernelConfigError(f"Invalid kernel params {self.params!r}: {exc}") from exc

        expected = _PARAM_COUNTS[kind]
        if len(params) != expected:
            raise KernelConfigError(
                f"{kind.value} kernel expects {expected} parameter(s), got {len(params)}"
            )
        if not all(math.isfinite(p) for p in params):
            raise KernelConfigError(f"Kernel parameters must be finite: {params}")

        object.__setattr__(self, "type", kind)
        object.__setattr__(self, "params", params)

    def product(self, v1: Sequence[float], v2: Sequence[float]) -> float:
        """Kernel inner product of two vectors."""
        if self.type is KernelType.LINEAR:
            return dot(v1, v2)
        if self.type is KernelType.POLYNOMIAL:
            offset, degree = self.params
            return math.pow(dot(v1, v2) + offset, degree)
        (gamma,) = self.params
        return math.exp(-gamma * squared_distance(v1, v2))

    def __str__(self) -> str:
        if self.type is KernelType.LINEAR:
            return "x*y"
        if self.type is KernelType.POLYNOMIAL:
            return f"(x*y + {self.params[0]:g})^{self.params[1]:g}"
        return f"exp(-{self.params[0]:g}*|x-y|^2)"

    def to_dict(self) -> dict:
        return {"type": self.type.value, "params": list(self.params)}

    @classmethod
    def from_dict(cls, data: dict) -> "Kernel":
        return cls(type=data["type"], params=tuple(data.get("params", ())))


class CachedKernel:
    """Lazily evaluated kernel products over a fixed list of vectors.

    Products are cached by the index pair of the two vectors, so each pair
    is computed at most once while a trainer solves several binary
    problems over the same samples.
    """

    def __init__(self, kernel: Kernel, vectors: Sequence[Sequence[float]]) -> None:
        self.kernel = kernel
        self.vectors = vectors
        self._cache: dict[tuple[int, int], float] = {}

    def __call__(self, i: int, j: int) -> float:
        key = (i, j) if i <= j else (j, i)
        value = self._cache.get(key)
        if value is None:
            value = self.kernel.product(self.vectors[i], self.vectors[j])
            self._cache[key] = value
        return value

    def row(self, i: int) -> list[float]:
        return [self(i, j) for j in range(len(self.vectors))]

    def __len__(self) -> int:
        return len(self._cache)
