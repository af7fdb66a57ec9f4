"""
Validated configuration for kernels, smoothing filters and semblance.

Each model validates its parameters on construction and on assignment and
builds the corresponding runtime object with ``build()``.

Usage:
    >>> config = SmoothingConfig(small=0.001, niter=500, kernel=KernelConfig(stencil="D71"))
    >>> lsf = config.build()
"""

from __future__ import annotations

import warnings
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from tensor_smoothing.operators.stencils import Stencil

if TYPE_CHECKING:
    from tensor_smoothing.alg.local_smoothing import LocalSmoothingFilter
    from tensor_smoothing.applications.semblance import LocalSemblanceFilter
    from tensor_smoothing.operators.differential import LocalDiffusionKernel


def _validate_stencil_name(v: str) -> str:
    name = str(v).upper()
    if name not in Stencil.__members__:
        raise ValueError(f"stencil must be one of {list(Stencil.__members__)}, got {v!r}")
    return name


class KernelConfig(BaseModel):
    """Configuration of a LocalDiffusionKernel."""

    stencil: str = Field("D22", description="Gradient stencil: D21, D22, D24, D33, D71 or D91")
    npass: int = Field(1, ge=1, le=100, description="Number of kernel applications per call")
    parallel: bool = Field(True, description="Dispatch outer-axis sweeps to a thread pool")
    max_workers: int | None = Field(None, ge=1, description="Thread count for parallel sweeps (None for CPU count)")

    @field_validator("stencil", mode="before")
    @classmethod
    def validate_stencil(cls, v) -> str:
        """Normalize and validate the stencil name."""
        if isinstance(v, Stencil):
            return v.name
        return _validate_stencil_name(v)

    model_config = ConfigDict(validate_assignment=True)

    def build(self) -> LocalDiffusionKernel:
        from tensor_smoothing.operators.differential import LocalDiffusionKernel

        return LocalDiffusionKernel(Stencil[self.stencil], self.npass, self.parallel, self.max_workers)


class SmoothingConfig(BaseModel):
    """
    Configuration of a LocalSmoothingFilter.

    Attributes:
        small: Relative residual at which CG stops
        niter: Maximum number of CG iterations
        preconditioner: Use diagonal-preconditioned CG
        kernel: Kernel configuration
    """

    small: float = Field(0.01, gt=0.0, lt=1.0, description="Relative residual stopping tolerance")
    niter: int = Field(100, ge=1, description="Maximum number of CG iterations")
    preconditioner: bool = Field(False, description="Use diagonal-preconditioned CG")
    kernel: KernelConfig = Field(default_factory=KernelConfig, description="Diffusion kernel configuration")

    @field_validator("small")
    @classmethod
    def validate_tolerance_feasibility(cls, v: float) -> float:
        """Warn about tolerances at single-precision rounding level."""
        if v < 1e-6:
            warnings.warn(
                f"Very strict smoothing tolerance ({v:.2e}) may require many CG iterations",
                UserWarning,
            )
        return v

    model_config = ConfigDict(validate_assignment=True)

    @classmethod
    def fast(cls) -> SmoothingConfig:
        """Loose tolerance with preconditioning, for previews."""
        return cls(small=0.05, niter=50, preconditioner=True)

    @classmethod
    def accurate(cls) -> SmoothingConfig:
        """Tight tolerance with the 7-point stencil."""
        return cls(small=0.0001, niter=1000, preconditioner=True, kernel=KernelConfig(stencil="D71"))

    def build(self) -> LocalSmoothingFilter:
        from tensor_smoothing.alg.local_smoothing import LocalSmoothingFilter

        return LocalSmoothingFilter(self.small, self.niter, self.kernel.build(), self.preconditioner)


class SemblanceConfig(BaseModel):
    """Configuration of a LocalSemblanceFilter."""

    half_width1: int = Field(..., ge=0, description="Half-width of smoothing along the semblance direction")
    half_width2: int = Field(..., ge=0, description="Half-width of smoothing along orthogonal directions")
    small: float = Field(0.001, gt=0.0, lt=1.0, description="CG stopping tolerance for each smoothing")
    niter: int = Field(1000, ge=1, description="Maximum CG iterations for each smoothing")
    stencil: str = Field("D71", description="Gradient stencil of the smoothing kernel")
    kmax: float = Field(0.35, gt=0.0, lt=0.5, description="Maximum wavenumber passed before smoothing")

    @field_validator("stencil", mode="before")
    @classmethod
    def validate_stencil(cls, v) -> str:
        """Normalize and validate the stencil name."""
        if isinstance(v, Stencil):
            return v.name
        return _validate_stencil_name(v)

    @model_validator(mode="after")
    def validate_half_widths(self) -> SemblanceConfig:
        """Warn when neither smoother does anything."""
        if self.half_width1 == 0 and self.half_width2 == 0:
            warnings.warn("Both half-widths are zero; semblance will be 1 wherever f is nonzero", UserWarning)
        return self

    model_config = ConfigDict(validate_assignment=True)

    def build(self) -> LocalSemblanceFilter:
        from tensor_smoothing.applications.semblance import LocalSemblanceFilter

        return LocalSemblanceFilter(
            self.half_width1,
            self.half_width2,
            small=self.small,
            niter=self.niter,
            stencil=Stencil[self.stencil],
            kmax=self.kmax,
        )
