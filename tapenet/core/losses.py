"""Error-function registry evaluated through a :class:`NumberFactory`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, Iterable, Sequence

from .types import NumberValue

if TYPE_CHECKING:  # pragma: no cover
    from .factory import NumberFactory

ErrorFn = Callable[["NumberFactory", Sequence[NumberValue], Sequence[NumberValue]], NumberValue]


@dataclass(frozen=True)
class ErrorFunction:
    """Named error function producing a single scalar value."""

    name: str
    fn: ErrorFn

    def __call__(
        self,
        factory: "NumberFactory",
        expected: Sequence[NumberValue],
        actual: Sequence[NumberValue],
    ) -> NumberValue:
        return self.fn(factory, expected, actual)


class ErrorRegistry:
    """Central registry for error functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, ErrorFunction] = {}

    def register(self, name: str, fn: ErrorFn) -> None:
        self._registry[name] = ErrorFunction(name, fn)

    def get(self, name: str) -> ErrorFunction:
        if name not in self._registry:
            available = ", ".join(self.names())
            raise KeyError(f"Unknown error function {name!r}. Available: {available}")
        return self._registry[name]

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def __contains__(self, name: object) -> bool:
        return name in self._registry


REGISTRY = ErrorRegistry()


def _euclidean_squared(
    factory: "NumberFactory",
    expected: Sequence[NumberValue],
    actual: Sequence[NumberValue],
) -> NumberValue:
    terms = [factory.powi(factory.sub(e, a), 2) for e, a in zip(expected, actual)]
    return factory.sum(terms)


def _categorical_cross_entropy(
    factory: "NumberFactory",
    expected: Sequence[NumberValue],
    actual: Sequence[NumberValue],
) -> NumberValue:
    # Constant zero targets contribute nothing, so ln(a) is not evaluated for them.
    terms = [
        factory.mul(e, factory.ln(a))
        for e, a in zip(expected, actual)
        if not (e.is_constant and e.scalar == 0.0)
    ]
    if not terms:
        return factory.constant(0.0)
    return factory.neg(factory.sum(terms))


REGISTRY.register("euclidean_squared", _euclidean_squared)
REGISTRY.register("categorical_cross_entropy", _categorical_cross_entropy)
# Short aliases used by presets
REGISTRY.register("sse", _euclidean_squared)
REGISTRY.register("cce", _categorical_cross_entropy)

__all__ = ["ErrorFunction", "ErrorRegistry", "REGISTRY"]
