"""Fully connected network stored as one flat parameter array.

Layer ``l`` owns ``neuron_count * (prev_size + bias_flag)`` parameters,
starting right after the parameters of layers ``0..l-1``.  Within a layer,
neuron ``n`` owns a contiguous block: its bias (when the layer uses biases)
followed by ``prev_size`` weights, one per activation of the previous layer.
``prev_size`` is the network input size for layer 0.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence, Tuple

import numpy as np

from .activations import Activation
from .errors import LengthMismatchError, ShapeMismatchError
from .factory import Differentiable, NumberFactory, PlainFactory
from .losses import REGISTRY as ERROR_REGISTRY
from .types import Array, BatchResult, ClassificationExample, ForwardPass, LayerSpec, NumberValue

INIT_SCHEMES = ("scaled_uniform", "xavier")


class ParameterizedNetwork:
    """Feed-forward classifier whose forward pass is written once for every backend."""

    def __init__(self, input_size: int, error_function: str = "categorical_cross_entropy") -> None:
        if int(input_size) <= 0:
            raise ValueError(f"input_size must be positive, got {input_size}")
        ERROR_REGISTRY.get(error_function)
        self.input_size = int(input_size)
        self.error_function = error_function
        self.layers: List[LayerSpec] = []
        self.params: Array = np.zeros(0, dtype=np.float64)
        self._offsets: List[int] = []

    # ------------------------------------------------------------------
    # Topology

    def add_layer(
        self,
        neuron_count: int,
        *,
        uses_bias: bool = True,
        dropout_rate: float = 0.0,
        neuron_activation: Activation | str = "none",
        layer_activation: str = "none",
        init: str = "scaled_uniform",
        rng: np.random.Generator | None = None,
    ) -> "ParameterizedNetwork":
        """Append a layer and initialise its parameters."""

        spec = LayerSpec(
            neuron_count=int(neuron_count),
            neuron_activation=Activation.parse(neuron_activation),
            layer_activation=layer_activation,
            uses_bias=bool(uses_bias),
            dropout_rate=float(dropout_rate),
        )
        return self.add_layer_spec(spec, init=init, rng=rng)

    def add_layer_spec(
        self,
        spec: LayerSpec,
        *,
        init: str = "scaled_uniform",
        rng: np.random.Generator | None = None,
    ) -> "ParameterizedNetwork":
        rng = rng if rng is not None else np.random.default_rng()
        fan_in = self.layers[-1].neuron_count if self.layers else self.input_size
        count = spec.neuron_count * (fan_in + spec.bias_flag)
        if init == "scaled_uniform":
            values = rng.random(count) / count / 100.0
        elif init == "xavier":
            limit = np.sqrt(6.0 / (fan_in + spec.neuron_count))
            values = rng.uniform(-limit, limit, size=count)
        else:
            raise ValueError(f"Unknown init scheme {init!r}. Available: {', '.join(INIT_SCHEMES)}")
        self._offsets.append(int(self.params.size))
        self.layers.append(spec)
        self.params = np.concatenate([self.params, values.astype(np.float64)])
        return self

    @property
    def parameter_count(self) -> int:
        return int(self.params.size)

    @property
    def output_size(self) -> int:
        if not self.layers:
            raise ShapeMismatchError("Network has no layers")
        return self.layers[-1].neuron_count

    # ------------------------------------------------------------------
    # Addressing

    def layer_input_size(self, layer: int) -> int:
        self._check_layer(layer)
        return self.input_size if layer == 0 else self.layers[layer - 1].neuron_count

    def layer_param_count(self, layer: int) -> int:
        spec = self.layers[self._check_layer(layer)]
        return spec.neuron_count * (self.layer_input_size(layer) + spec.bias_flag)

    def layer_offset(self, layer: int) -> int:
        return self._offsets[self._check_layer(layer)]

    def neuron_offset(self, layer: int, neuron: int) -> int:
        spec = self.layers[self._check_layer(layer)]
        if not 0 <= neuron < spec.neuron_count:
            raise IndexError(f"Layer {layer} has no neuron {neuron}")
        return self.layer_offset(layer) + neuron * (self.layer_input_size(layer) + spec.bias_flag)

    def bias_index(self, layer: int, neuron: int) -> int | None:
        index = self.neuron_offset(layer, neuron)
        return index if self.layers[layer].uses_bias else None

    def weight_range(self, layer: int, neuron: int) -> Tuple[int, int]:
        start = self.neuron_offset(layer, neuron) + self.layers[layer].bias_flag
        return start, start + self.layer_input_size(layer)

    def _check_layer(self, layer: int) -> int:
        if not 0 <= layer < len(self.layers):
            raise IndexError(f"Network has no layer {layer}")
        return layer

    # ------------------------------------------------------------------
    # Forward and backward passes

    def forward(
        self,
        factory: NumberFactory,
        example: ClassificationExample,
        *,
        predict: bool = False,
        rng: np.random.Generator | None = None,
    ) -> ForwardPass:
        """Run the network on ``example`` using ``factory`` arithmetic.

        Parameters become tracked variables only when ``factory`` is
        differentiable and ``predict`` is false; their handles are returned in
        flat-parameter order.  In training mode each bias and weight use-site
        is dropped to constant zero with the layer's dropout probability; in
        predict mode weights are scaled by ``1 - dropout_rate`` instead.
        """

        inputs = list(example.get_input())
        if len(inputs) != self.input_size:
            raise ShapeMismatchError(
                f"Input has {len(inputs)} features but the network expects {self.input_size}"
            )
        if not self.layers:
            raise ShapeMismatchError("Network has no layers")

        differentiable = None if predict else factory.as_differentiable()
        handles: List[NumberValue] = []
        activations = factory.constants(inputs)
        for layer, spec in enumerate(self.layers):
            start = self._offsets[layer]
            count = self.layer_param_count(layer)
            values = self.params[start : start + count].tolist()
            keep = self._dropout_mask(spec, count, predict, rng)
            weight_scale = 1.0 - spec.dropout_rate if predict else 1.0
            block = len(activations) + spec.bias_flag

            outputs: List[NumberValue] = []
            for neuron in range(spec.neuron_count):
                base = neuron * block
                terms: List[NumberValue] = []
                if spec.uses_bias:
                    terms.append(
                        self._parameter(factory, differentiable, values[base], keep[base], 1.0, handles)
                    )
                for k, activation in enumerate(activations):
                    local = base + spec.bias_flag + k
                    weight = self._parameter(
                        factory, differentiable, values[local], keep[local], weight_scale, handles
                    )
                    terms.append(factory.mul(weight, activation))
                outputs.append(factory.activate_neuron(factory.sum(terms), spec.neuron_activation))
            activations = factory.activate_layer(outputs, spec.layer_activation)
        return ForwardPass(outputs=activations, parameter_handles=handles)

    def evaluate(
        self,
        factory: NumberFactory,
        example: ClassificationExample,
        *,
        predict: bool = False,
        rng: np.random.Generator | None = None,
    ) -> BatchResult:
        """Return the error, gradient and accuracy of a single sample.

        The gradient is empty unless ``factory`` is differentiable and
        ``predict`` is false.
        """

        forward = self.forward(factory, example, predict=predict, rng=rng)
        expected = list(example.get_expected_one_hot())
        if len(expected) != len(forward.outputs):
            raise ShapeMismatchError(
                f"Label has {len(expected)} categories but the output layer has {len(forward.outputs)}"
            )
        error = factory.compute_error(expected, forward.outputs, self.error_function)

        differentiable = None if predict else factory.as_differentiable()
        if differentiable is None:
            gradient = np.zeros(0, dtype=np.float64)
        elif error.is_constant:
            gradient = np.zeros(len(forward.parameter_handles), dtype=np.float64)
        else:
            gradient = np.array(
                [differentiable.diff(error, handle) for handle in forward.parameter_handles],
                dtype=np.float64,
            )
        hit = factory.hottest_index(forward.outputs) == int(example.get_category())
        return BatchResult(
            error=float(error.scalar),
            gradient=gradient,
            accuracy=1.0 if hit else 0.0,
            sample_count=1,
        )

    def predict(self, example: ClassificationExample) -> int:
        """Return the index of the hottest output for ``example``."""

        forward = self.forward(PlainFactory(), example, predict=True)
        return NumberFactory.hottest_index(forward.outputs)

    def back_propagate(self, gradient: Sequence[float] | Array, learning_rate: float) -> None:
        """Apply one gradient-descent step to every parameter."""

        gradient = np.asarray(gradient, dtype=np.float64)
        if gradient.shape != self.params.shape:
            raise LengthMismatchError(
                f"Gradient has {gradient.size} entries but the network has {self.params.size} parameters"
            )
        self.params -= float(learning_rate) * gradient

    # ------------------------------------------------------------------
    # Persistence

    def state_dict(self) -> Mapping[str, Array]:
        return {"params": self.params.copy()}

    def load_state_dict(self, state: Mapping[str, Array]) -> None:
        if "params" not in state:
            raise KeyError("Missing 'params' in state dict")
        params = np.asarray(state["params"], dtype=np.float64)
        if params.shape != self.params.shape:
            raise LengthMismatchError(
                f"State has {params.size} parameters but the network has {self.params.size}"
            )
        self.params = params.copy()

    def describe(self) -> Dict[str, Any]:
        return {
            "input_size": self.input_size,
            "error_function": self.error_function,
            "parameter_count": self.parameter_count,
            "layers": [
                {
                    "neurons": spec.neuron_count,
                    "activation": str(spec.neuron_activation),
                    "layer_activation": spec.layer_activation,
                    "bias": spec.uses_bias,
                    "dropout": spec.dropout_rate,
                }
                for spec in self.layers
            ],
        }

    # ------------------------------------------------------------------
    # Internal helpers

    @staticmethod
    def _dropout_mask(
        spec: LayerSpec,
        count: int,
        predict: bool,
        rng: np.random.Generator | None,
    ) -> List[bool]:
        if predict or spec.dropout_rate <= 0.0:
            return [True] * count
        rng = rng if rng is not None else np.random.default_rng()
        return (rng.random(count) >= spec.dropout_rate).tolist()

    @staticmethod
    def _parameter(
        factory: NumberFactory,
        differentiable: Differentiable | None,
        scalar: float,
        kept: bool,
        scale: float,
        handles: List[NumberValue],
    ) -> NumberValue:
        if not kept:
            value = factory.constant(0.0)
        elif differentiable is not None:
            value = differentiable.variable(scalar)
        else:
            value = factory.constant(scalar * scale)
        if differentiable is not None:
            handles.append(value)
        return value


__all__ = ["INIT_SCHEMES", "ParameterizedNetwork"]
