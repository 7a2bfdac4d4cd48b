"""
Domain package for the Decomposer service.

Holds the request/response models shared by the router, cache, quota and
provider client, and the instruction templates sent to the provider.
"""

from .models import (
    DecomposeRequest,
    DecomposedTask,
    DecompositionResult,
    Step,
    Style,
    SubStepsRequest,
    SubStepsResult,
    TaskContext,
    TokenClaims,
)

__all__ = [
    "DecomposeRequest",
    "DecomposedTask",
    "DecompositionResult",
    "Step",
    "Style",
    "SubStepsRequest",
    "SubStepsResult",
    "TaskContext",
    "TokenClaims",
]
