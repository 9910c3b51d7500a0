"""Numeric backends shared by inference and training.

:class:`NumberFactory` defines every primitive and higher-level operation
once.  Each primitive computes its float result and, when the factory
exposes the differentiable capability, records the analytic partials on the
factory's tape.  Forward code queries :meth:`NumberFactory.as_differentiable`
instead of assuming a backend, so the same code drives :class:`PlainFactory`
(fast inference) and :class:`TapeFactory` (gradients).
"""

from __future__ import annotations

import math
import operator
from typing import Callable, Dict, Iterable, List, Protocol, Sequence, Tuple, Union

from .activations import Activation
from .errors import (
    EmptyInputError,
    LengthMismatchError,
    NumericInstabilityError,
)
from .losses import REGISTRY as ERROR_REGISTRY
from .tape import Tape
from .types import NumberValue

Partial = Union[float, Callable[[], float]]
Scalar = Union[NumberValue, float]


def _checked(op: str, fn: Callable[..., float], *args: float) -> float:
    try:
        value = fn(*args)
    except (ArithmeticError, ValueError) as exc:
        raise NumericInstabilityError(f"{op}{args} is undefined: {exc}") from exc
    if not math.isfinite(value):
        raise NumericInstabilityError(f"{op}{args} produced {value}")
    return float(value)


def _sigmoid(x: float) -> float:
    if x >= 0.0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


class Differentiable(Protocol):
    """Capability exposed by backends that record a tape."""

    def variable(self, scalar: float) -> NumberValue:
        """Return a tracked value for ``scalar``."""

    def compose(
        self, result: float, partials: Iterable[Tuple[NumberValue, float]]
    ) -> NumberValue:
        """Record ``result`` with its local partial derivatives."""

    def diff(self, y: NumberValue, x: NumberValue) -> float:
        """Return ``dy/dx``."""


class NumberFactory:
    """Base arithmetic, activation and error-function operations."""

    name = "base"

    def as_differentiable(self) -> Differentiable | None:
        return None

    def reset(self) -> None:
        """Release per-sample state; plain values hold none."""

    # ------------------------------------------------------------------
    # Values

    def constant(self, scalar: float) -> NumberValue:
        return NumberValue(float(scalar))

    def constants(self, scalars: Iterable[float]) -> List[NumberValue]:
        return [self.constant(s) for s in scalars]

    def _value(self, value: Scalar) -> NumberValue:
        if isinstance(value, NumberValue):
            return value
        return self.constant(value)

    def _emit(
        self,
        op: str,
        result: float,
        partials: Sequence[Tuple[NumberValue, Partial]],
    ) -> NumberValue:
        differentiable = self.as_differentiable()
        if differentiable is None:
            return NumberValue(result)
        entries: List[Tuple[NumberValue, float]] = []
        for operand, partial in partials:
            if operand.slot is None:
                continue
            value = _checked(f"d{op}", partial) if callable(partial) else float(partial)
            if not math.isfinite(value):
                raise NumericInstabilityError(f"d{op} produced {value}")
            entries.append((operand, value))
        return differentiable.compose(result, entries)

    # ------------------------------------------------------------------
    # Primitives

    def add(self, a: NumberValue, b: NumberValue) -> NumberValue:
        result = _checked("add", operator.add, a.scalar, b.scalar)
        return self._emit("add", result, ((a, 1.0), (b, 1.0)))

    def sub(self, a: NumberValue, b: NumberValue) -> NumberValue:
        result = _checked("sub", operator.sub, a.scalar, b.scalar)
        return self._emit("sub", result, ((a, 1.0), (b, -1.0)))

    def mul(self, a: NumberValue, b: NumberValue) -> NumberValue:
        result = _checked("mul", operator.mul, a.scalar, b.scalar)
        return self._emit("mul", result, ((a, b.scalar), (b, a.scalar)))

    def div(self, a: NumberValue, b: NumberValue) -> NumberValue:
        result = _checked("div", operator.truediv, a.scalar, b.scalar)
        return self._emit(
            "div",
            result,
            (
                (a, lambda: 1.0 / b.scalar),
                (b, lambda: -a.scalar / (b.scalar * b.scalar)),
            ),
        )

    def exp(self, a: NumberValue) -> NumberValue:
        result = _checked("exp", math.exp, a.scalar)
        return self._emit("exp", result, ((a, result),))

    def ln(self, a: NumberValue) -> NumberValue:
        result = _checked("ln", math.log, a.scalar)
        return self._emit("ln", result, ((a, lambda: 1.0 / a.scalar),))

    def powi(self, a: NumberValue, n: int) -> NumberValue:
        n = int(n)
        result = _checked("powi", math.pow, a.scalar, float(n))
        if n == 0:
            return self._emit("powi", result, ((a, 0.0),))
        return self._emit("powi", result, ((a, lambda: n * math.pow(a.scalar, n - 1)),))

    def pow(self, a: NumberValue, b: NumberValue) -> NumberValue:
        result = _checked("pow", math.pow, a.scalar, b.scalar)
        return self._emit(
            "pow",
            result,
            (
                (a, lambda: b.scalar * math.pow(a.scalar, b.scalar - 1.0)),
                # The exponent's partial is taken as zero where ln(a) is undefined.
                (b, lambda: math.log(a.scalar) * result if a.scalar > 0.0 else 0.0),
            ),
        )

    def neg(self, a: NumberValue) -> NumberValue:
        return self._emit("neg", -a.scalar, ((a, -1.0),))

    def sum(self, values: Sequence[NumberValue]) -> NumberValue:
        """Left fold of :meth:`add`; empty input yields constant zero."""

        if not values:
            return self.constant(0.0)
        total = values[0]
        for value in values[1:]:
            total = self.add(total, value)
        return total

    # ------------------------------------------------------------------
    # Activations and errors

    def activate_neuron(self, x: NumberValue, activation: Activation | str) -> NumberValue:
        activation = Activation.parse(activation)
        kind = activation.kind
        if kind == "none":
            return x
        if kind == "relu":
            if x.scalar > 0.0:
                return self._emit("relu", x.scalar, ((x, 1.0),))
            return self._emit("relu", 0.0, ((x, 0.0),))
        if kind == "leaky_relu":
            if x.scalar > 0.0:
                return self._emit("leaky_relu", x.scalar, ((x, 1.0),))
            leak = activation.leak
            result = _checked("leaky_relu", operator.mul, leak, x.scalar)
            return self._emit("leaky_relu", result, ((x, leak),))
        if kind == "sigmoid":
            s = _checked("sigmoid", _sigmoid, x.scalar)
            return self._emit("sigmoid", s, ((x, s * (1.0 - s)),))
        raise ValueError(f"Unsupported neuron activation: {activation}")

    def activate_layer(self, values: Sequence[NumberValue], kind: str) -> List[NumberValue]:
        if kind == "none":
            return list(values)
        if kind == "softmax":
            if not values:
                raise EmptyInputError("Softmax of an empty layer")
            shift = self.constant(max(v.scalar for v in values))
            exps = [self.exp(self.sub(v, shift)) for v in values]
            total = self.sum(exps)
            return [self.div(e, total) for e in exps]
        raise ValueError(f"Unsupported layer activation: {kind}")

    def compute_error(
        self,
        expected: Sequence[Scalar],
        actual: Sequence[NumberValue],
        kind: str,
    ) -> NumberValue:
        if len(expected) != len(actual):
            raise LengthMismatchError(
                f"Expected vector has {len(expected)} entries but actual has {len(actual)}"
            )
        if not expected:
            raise EmptyInputError("Error function invoked on empty vectors")
        error_fn = ERROR_REGISTRY.get(kind)
        return error_fn(self, [self._value(e) for e in expected], list(actual))

    @staticmethod
    def hottest_index(values: Sequence[Scalar]) -> int:
        """Index of the largest value; the first one wins ties."""

        if not values:
            raise EmptyInputError("hottest_index of an empty vector")
        scalars = [float(v) for v in values]
        return max(range(len(scalars)), key=scalars.__getitem__)


class PlainFactory(NumberFactory):
    """Computes floats directly with no bookkeeping."""

    name = "plain"


class TapeFactory(NumberFactory):
    """Records every operation on a private :class:`Tape`."""

    name = "tape"

    def __init__(self) -> None:
        self.tape = Tape()

    def as_differentiable(self) -> "TapeFactory":
        return self

    def variable(self, scalar: float) -> NumberValue:
        return self.tape.new_variable(scalar)

    def compose(
        self, result: float, partials: Iterable[Tuple[NumberValue, float]]
    ) -> NumberValue:
        return self.tape.compose(result, partials)

    def diff(self, y: NumberValue, x: NumberValue) -> float:
        return self.tape.diff(y, x)

    def reset(self) -> None:
        self.tape.reset()


_BACKENDS: Dict[str, type] = {
    "plain": PlainFactory,
    "tape": TapeFactory,
}


def register_backend(name: str, factory_class: type) -> None:
    """Register a backend class under ``name``."""

    _BACKENDS[name] = factory_class


def get_backend(name: str) -> NumberFactory:
    """Return a fresh instance of the backend called ``name``."""

    if name not in _BACKENDS:
        raise KeyError(f"Unknown backend: {name}. Available: {sorted(_BACKENDS)}")
    return _BACKENDS[name]()


def available_backends() -> List[str]:
    return sorted(_BACKENDS)


__all__ = [
    "Differentiable",
    "NumberFactory",
    "PlainFactory",
    "TapeFactory",
    "available_backends",
    "get_backend",
    "register_backend",
]
