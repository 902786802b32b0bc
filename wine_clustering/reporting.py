from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Tuple, Union

import numpy as np


@dataclass(frozen=True)
class FloatTensor:
    name: str
    values: np.ndarray


@dataclass(frozen=True)
class IntTensor:
    name: str
    values: np.ndarray


@dataclass(frozen=True)
class BoolTensor:
    name: str
    values: np.ndarray


@dataclass(frozen=True)
class Unsupported:
    name: str


@dataclass(frozen=True)
class MissingTensor:
    name: str | None


OutputTensor = Union[FloatTensor, IntTensor, BoolTensor, Unsupported, MissingTensor]


def classify_output(name: str | None, value: Any) -> OutputTensor:
    """Tag a runtime output by element type, checking float, int, bool in order."""
    if name is None or value is None:
        return MissingTensor(name)
    if not isinstance(value, np.ndarray):
        return Unsupported(name)
    if value.size == 0:
        return MissingTensor(name)
    if np.issubdtype(value.dtype, np.floating):
        return FloatTensor(name, value)
    if np.issubdtype(value.dtype, np.integer):
        return IntTensor(name, value)
    if np.issubdtype(value.dtype, np.bool_):
        return BoolTensor(name, value)
    return Unsupported(name)


def describe(tensor: OutputTensor) -> str:
    match tensor:
        case MissingTensor(name=None):
            return "A result was null."
        case MissingTensor(name=name):
            return f"{name} returned a null value."
        case FloatTensor(name=name, values=values):
            return f"{name}: {float(values.flat[0])}"
        case IntTensor(name=name, values=values):
            return f"{name}: {int(values.flat[0])}"
        case BoolTensor(name=name, values=values):
            return f"{name}: {bool(values.flat[0])}"
        case Unsupported(name=name):
            return f"{name} has an unexpected type or structure."
    raise TypeError(f"Not an output tensor variant: {tensor!r}")


def report_outputs(outputs: Iterable[Tuple[str | None, Any]]) -> List[str]:
    lines = [describe(classify_output(name, value)) for name, value in outputs]
    for line in lines:
        print(line)
    return lines
