"""Append-only computation tape for reverse-mode differentiation."""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Tuple

from .errors import InvalidDifferentiationError
from .types import NumberValue

TapeRecord = Tuple[Tuple[int, float], ...]


class Tape:
    """Ordered log of computation records.

    A record's position is its slot.  Records may only reference slots that
    already exist, so every dependency of record ``i`` has a slot below ``i``
    and a single reverse scan propagates gradients in topological order.
    """

    def __init__(self) -> None:
        self._records: List[TapeRecord] = []
        self._gradients: Dict[int, List[float]] = {}

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> Sequence[TapeRecord]:
        return tuple(self._records)

    def new_variable(self, scalar: float) -> NumberValue:
        """Append an empty record and return a variable bound to it."""

        self._records.append(())
        return NumberValue(float(scalar), len(self._records) - 1)

    @staticmethod
    def constant(scalar: float) -> NumberValue:
        return NumberValue(float(scalar))

    def compose(
        self, result: float, partials: Iterable[Tuple[NumberValue, float]]
    ) -> NumberValue:
        """Record ``result`` together with its local partial derivatives.

        Constant operands are dropped.  When no operand is a variable the
        result is itself a constant and nothing is appended.
        """

        entries: List[Tuple[int, float]] = []
        for operand, partial in partials:
            if operand.slot is None:
                continue
            self._check_slot(operand)
            entries.append((operand.slot, float(partial)))
        if not entries:
            return NumberValue(float(result))
        self._records.append(tuple(entries))
        return NumberValue(float(result), len(self._records) - 1)

    def gradient_of(self, y: NumberValue) -> List[float]:
        """Return ``dy/dslot`` for every slot up to and including ``y``'s."""

        if y.slot is None:
            raise InvalidDifferentiationError("Cannot take the gradient of a constant")
        self._check_slot(y)
        cached = self._gradients.get(y.slot)
        if cached is not None:
            return cached

        gradient = [0.0] * (y.slot + 1)
        gradient[y.slot] = 1.0
        records = self._records
        for index in range(y.slot, -1, -1):
            upstream = gradient[index]
            if upstream == 0.0:
                continue
            for dependency, partial in records[index]:
                gradient[dependency] += partial * upstream
        self._gradients[y.slot] = gradient
        return gradient

    def diff(self, y: NumberValue, x: NumberValue) -> float:
        """Return ``dy/dx``; zero when ``x`` is a constant."""

        if x.slot is None:
            return 0.0
        self._check_slot(x)
        gradient = self.gradient_of(y)
        if x.slot >= len(gradient):
            # x was created after y, so y cannot depend on it.
            return 0.0
        return gradient[x.slot]

    def reset(self) -> None:
        """Drop every record along with the gradients indexed by them."""

        self._records.clear()
        self._gradients.clear()

    def _check_slot(self, value: NumberValue) -> None:
        if value.slot is None or not 0 <= value.slot < len(self._records):
            raise InvalidDifferentiationError(
                f"Slot {value.slot} is not on this tape (length {len(self._records)})"
            )


__all__ = ["Tape", "TapeRecord"]
