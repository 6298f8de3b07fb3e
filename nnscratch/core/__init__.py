"""Core numerical primitives for nnscratch."""

from . import activations, costs, kernel, types
from .delta import Delta
from .layer import InitPolicy, Layer
from .network import Network

__all__ = [
    "Delta",
    "InitPolicy",
    "Layer",
    "Network",
    "activations",
    "costs",
    "kernel",
    "types",
]
