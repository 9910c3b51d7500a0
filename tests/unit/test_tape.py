import numpy as np
import pytest

from tapenet.core.errors import InvalidDifferentiationError
from tapenet.core.factory import TapeFactory
from tapenet.core.tape import Tape
from tapenet.core.types import NumberValue


def test_quotient_gradient_matches_closed_form():
    f = TapeFactory()
    x = f.variable(3.0)
    y = f.variable(4.0)
    z = f.div(y, f.sub(f.exp(x), y))

    assert f.diff(z, x) == pytest.approx(-0.310507656, rel=1e-6)
    assert f.diff(z, y) == pytest.approx(0.077626914, rel=1e-6)


def test_constant_has_zero_gradient():
    f = TapeFactory()
    x = f.variable(2.0)
    c = f.constant(5.0)
    y = f.mul(f.add(x, c), c)

    assert f.diff(y, c) == 0.0
    assert f.diff(y, x) == pytest.approx(5.0)


def test_compose_drops_constant_operands():
    tape = Tape()
    x = tape.new_variable(1.0)
    c = tape.constant(7.0)
    y = tape.compose(3.0, [(x, 2.0), (c, 9.0)])

    assert y.slot == 1
    assert tape.records[1] == ((0, 2.0),)


def test_compose_of_constants_stays_constant():
    tape = Tape()
    result = tape.compose(1.5, [(tape.constant(1.0), 1.0)])

    assert result.is_constant
    assert len(tape) == 0


def test_diff_is_memoised_and_pure():
    f = TapeFactory()
    x = f.variable(0.5)
    y = f.mul(x, f.exp(x))
    first = f.diff(y, x)
    second = f.diff(y, x)

    assert first == second
    assert x.scalar == 0.5
    assert y.scalar == pytest.approx(0.5 * np.exp(0.5))
    assert f.tape.gradient_of(y) is f.tape.gradient_of(y)


def test_gradient_of_constant_is_invalid():
    tape = Tape()
    with pytest.raises(InvalidDifferentiationError):
        tape.gradient_of(NumberValue(1.0))


def test_value_from_another_tape_is_invalid():
    tape = Tape()
    tape.new_variable(1.0)
    with pytest.raises(InvalidDifferentiationError):
        tape.diff(NumberValue(1.0, slot=0), NumberValue(2.0, slot=5))


def test_variable_created_after_output_has_zero_gradient():
    f = TapeFactory()
    x = f.variable(1.0)
    y = f.mul(x, x)
    late = f.variable(3.0)

    assert f.diff(y, late) == 0.0


def test_reset_clears_records_and_gradients():
    f = TapeFactory()
    x = f.variable(1.0)
    y = f.mul(x, x)
    f.diff(y, x)
    f.reset()

    assert len(f.tape) == 0
    with pytest.raises(InvalidDifferentiationError):
        f.diff(y, x)


def test_random_graphs_keep_dependencies_topological():
    rng = np.random.default_rng(1234)
    for _ in range(20):
        f = TapeFactory()
        values = [f.variable(float(v)) for v in rng.uniform(-1, 1, size=4)]
        values.append(f.constant(0.3))
        for _ in range(60):
            a = values[int(rng.integers(len(values)))]
            b = values[int(rng.integers(len(values)))]
            op = int(rng.integers(4))
            if op == 0:
                out = f.add(a, b)
            elif op == 1:
                out = f.mul(a, b)
            elif op == 2:
                out = f.neg(a)
            else:
                out = f.sub(a, b)
            values.append(f.activate_neuron(out, "sigmoid"))

        for index, record in enumerate(f.tape.records):
            assert all(dependency < index for dependency, _ in record)
        output = values[-1]
        if output.is_variable:
            gradient = f.tape.gradient_of(output)
            assert len(gradient) == output.slot + 1
            assert np.all(np.isfinite(gradient))
