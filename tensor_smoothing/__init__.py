from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tensor-smoothing")  # Matches the name in pyproject.toml
except PackageNotFoundError:
    # package is not installed
    __version__ = "0.0.0-dev"

from .alg import LocalSmoothingFilter
from .applications import Direction2, Direction3, LocalSemblanceFilter
from .config import KernelConfig, SemblanceConfig, SmoothingConfig
from .operators import LocalDiffusionKernel, LocalDiffusionOperator, Stencil
from .tensors import (
    IDENTITY_TENSORS2,
    IDENTITY_TENSORS3,
    ArrayTensors2,
    ArrayTensors3,
    EigenTensors2,
    EigenTensors3,
)
from .utils import SmoothingResult, configure_logging, get_logger

__all__ = [
    "IDENTITY_TENSORS2",
    "IDENTITY_TENSORS3",
    "ArrayTensors2",
    "ArrayTensors3",
    "Direction2",
    "Direction3",
    "EigenTensors2",
    "EigenTensors3",
    "KernelConfig",
    "LocalDiffusionKernel",
    "LocalDiffusionOperator",
    "LocalSemblanceFilter",
    "LocalSmoothingFilter",
    "SemblanceConfig",
    "SmoothingConfig",
    "SmoothingResult",
    "Stencil",
    "__version__",
    "configure_logging",
    "get_logger",
]
