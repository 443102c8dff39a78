"""Inference engine boundary.

The pipeline only needs `run({name: tensor}) -> {name: tensor}`. The ONNX
Runtime adapter below is the concrete engine used by the CLI; tests plug in
in-memory fakes through the same `InferenceEngine` interface.
"""

from __future__ import annotations

import threading

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np
import torch

from faceoff.errors import InferenceFailure, MissingOutput
from faceoff.utils.log import get_logger, suppress_fds

logger = get_logger(__name__)

# In-process session cache: building an onnxruntime session is the slowest part of startup.
# The key must include everything that changes the session (path + providers).
_SESSION_CACHE: Dict[Tuple, Any] = {}
_SESSION_LOCK = threading.Lock()


class InferenceEngine(ABC):
    """Executes one trained model graph: tensors in, named tensors out."""

    @property
    @abstractmethod
    def input_names(self) -> List[str]:
        pass

    @property
    @abstractmethod
    def output_names(self) -> List[str]:
        pass

    @abstractmethod
    def run(self, inputs: Mapping[str, np.ndarray]) -> Dict[str, np.ndarray]:
        """Run the model.

        Implementations should wrap engine errors in InferenceFailure; the
        pipeline still isolates any other exception to the face it hit.

        Raises:
            InferenceFailure: on any engine error.
        """
        pass


def resolve_device(device: str = "auto") -> str:
    """Map 'auto'/'cpu'/'gpu' to 'gpu' or 'cpu'."""
    dev = str(device).strip().lower()
    if dev in {"gpu", "cuda"}:
        return "gpu"
    if dev == "cpu":
        return "cpu"
    try:
        return "gpu" if torch.cuda.is_available() else "cpu"
    except Exception:
        return "cpu"


def providers_for(device: str) -> List[str]:
    if resolve_device(device) == "gpu":
        return ["CUDAExecutionProvider", "CPUExecutionProvider"]
    return ["CPUExecutionProvider"]


class OnnxInferenceEngine(InferenceEngine):
    """`InferenceEngine` backed by an onnxruntime `InferenceSession`."""

    def __init__(self, model_path: Union[str, Path], device: str = "auto", providers: Optional[List[str]] = None):
        self.model_path = Path(model_path)
        self.device = device
        self.providers = list(providers) if providers else providers_for(device)
        self._session = self._load_session()
        self._input_names = [i.name for i in self._session.get_inputs()]
        self._output_names = [o.name for o in self._session.get_outputs()]

        for meta in self._session.get_inputs():
            logger.info(f"{self.model_path.name}: input {meta.name} shape={meta.shape} type={meta.type}")
        logger.info(f"{self.model_path.name}: outputs {self._output_names} (providers={self.providers})")

    def _load_session(self):
        import onnxruntime as ort

        if not self.model_path.exists():
            raise FileNotFoundError(f"model not found: {self.model_path}")

        key = (str(self.model_path.resolve()), tuple(self.providers))
        # One session per key, also when several threads load the same model.
        with _SESSION_LOCK:
            cached = _SESSION_CACHE.get(key)
            if cached is not None:
                return cached

            available = set(ort.get_available_providers())
            providers = [p for p in self.providers if p in available] or ["CPUExecutionProvider"]
            try:
                with suppress_fds():
                    session = ort.InferenceSession(str(self.model_path), providers=providers)
            except Exception as e:
                logger.error(f"failed to load model {self.model_path}: {e}")
                raise InferenceFailure(f"failed to load model {self.model_path}: {e}") from e

            _SESSION_CACHE[key] = session
            return session

    @property
    def input_names(self) -> List[str]:
        return list(self._input_names)

    @property
    def output_names(self) -> List[str]:
        return list(self._output_names)

    def run(self, inputs: Mapping[str, np.ndarray]) -> Dict[str, np.ndarray]:
        try:
            outputs = self._session.run(None, dict(inputs))
        except Exception as e:
            raise InferenceFailure(f"{self.model_path.name}: inference failed: {e}") from e
        return {name: np.asarray(arr) for name, arr in zip(self._output_names, outputs)}


@dataclass
class OutputBinding:
    """Maps logical roles ("scores", "boxes", "logits") to model output names.

    A role may also be bound to an int, meaning "the output at this position";
    `bind()` turns that into a concrete name once, at model-load time.
    """

    roles: Dict[str, Union[str, int]] = field(default_factory=dict)
    input_name: Optional[str] = None

    def bind(self, engine: InferenceEngine) -> "BoundOutputs":
        """Validate every role against `engine` and freeze the result.

        Raises:
            MissingOutput: a role names an output the engine does not declare.
        """
        available = list(engine.output_names)
        resolved: Dict[str, str] = {}
        for role, target in self.roles.items():
            if isinstance(target, int):
                if target < 0 or target >= len(available):
                    raise MissingOutput(role, f"#{target}", available)
                resolved[role] = available[target]
            elif target in available:
                resolved[role] = str(target)
            else:
                raise MissingOutput(role, str(target), available)

        inputs = list(engine.input_names)
        if self.input_name is not None:
            if self.input_name not in inputs:
                raise InferenceFailure(f"input '{self.input_name}' not found (available: {inputs})")
            input_name = self.input_name
        elif inputs:
            input_name = inputs[0]
        else:
            raise InferenceFailure("model declares no inputs")

        return BoundOutputs(input_name=input_name, outputs=resolved)


@dataclass(frozen=True)
class BoundOutputs:
    input_name: str
    outputs: Dict[str, str]

    def pick(self, results: Mapping[str, np.ndarray], role: str) -> Optional[np.ndarray]:
        """The tensor for `role`, or None if the engine did not return it this call."""
        name = self.outputs.get(role)
        if name is None:
            return None
        arr = results.get(name)
        return None if arr is None else np.asarray(arr)
