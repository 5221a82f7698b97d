"""Core numerical primitives for backpropnets."""

from . import activations, errors, layers, network, optimizers, types

__all__ = ["activations", "errors", "layers", "network", "optimizers", "types"]
