"""Error taxonomy for the detection/enrichment pipeline.

"No faces found" is not an error: it is an empty result list.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class FaceOffError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidInput(FaceOffError, ValueError):
    """Image bytes are missing or cannot be decoded."""


class InvalidRegion(FaceOffError, ValueError):
    """A crop/resize region or target has zero width or height."""


class DegenerateCrop(FaceOffError, ValueError):
    """Crop geometry collapsed to a non-positive width or height."""


class InferenceFailure(FaceOffError):
    """The inference engine failed or returned unusable tensors."""


class MissingOutput(InferenceFailure):
    """A configured output binding names a tensor the model does not produce."""

    def __init__(self, role: str, output_name: str, available: Optional[list] = None):
        available = list(available or [])
        super().__init__(
            f"output for role '{role}' not found: '{output_name}' (available: {available})",
            details={"role": role, "output_name": output_name, "available": available},
        )
        self.role = role
        self.output_name = output_name
        self.available = available
