"""
Exception classes for tensor_smoothing with helpful error messages.

Configuration problems (unsupported stencils, mismatched shapes, invalid
tolerances) are raised immediately and never replaced by a fallback.
Non-convergence of the iterative solvers is not an error; see
``tensor_smoothing.alg.local_smoothing``.
"""

from __future__ import annotations

from typing import Any

import numpy as np


class SmoothingError(Exception):
    """
    Base exception for smoothing errors with context and suggestions.

    The formatted message contains:
    - the component that raised the error
    - a suggested action, if one is known
    - an error code
    - optional diagnostic key/value pairs
    """

    def __init__(
        self,
        message: str,
        component: str | None = None,
        suggested_action: str | None = None,
        error_code: str | None = None,
        diagnostic_data: dict[str, Any] | None = None,
    ):
        self.component = component or "tensor_smoothing"
        self.suggested_action = suggested_action
        self.error_code = error_code
        self.diagnostic_data = diagnostic_data or {}

        full_message = f"[{self.component}] {message}"

        if self.suggested_action:
            full_message += f"\nSuggestion: {self.suggested_action}"

        if self.error_code:
            full_message += f"\nError Code: {self.error_code}"

        if self.diagnostic_data:
            full_message += "\nDiagnostic Information:"
            for key, value in self.diagnostic_data.items():
                full_message += f"\n   - {key}: {value}"

        super().__init__(full_message)


class ConfigurationError(SmoothingError):
    """Exception raised when a filter or kernel parameter is invalid."""

    def __init__(
        self,
        parameter_name: str,
        provided_value: Any,
        expected_type: type | tuple | None = None,
        valid_range: tuple | None = None,
        component: str | None = None,
        reason: str | None = None,
        suggested_action: str | None = None,
    ):
        self.parameter_name = parameter_name
        self.provided_value = provided_value

        diagnostic_data = {
            "parameter": parameter_name,
            "provided_value": str(provided_value),
            "provided_type": type(provided_value).__name__,
        }

        if expected_type:
            diagnostic_data["expected_type"] = _type_name(expected_type)

        if valid_range:
            diagnostic_data["valid_range"] = f"({valid_range[0]}, {valid_range[1]})"

        if reason:
            diagnostic_data["reason"] = reason

        if suggested_action is None:
            suggested_action = _generate_configuration_suggestions(
                parameter_name, provided_value, expected_type, valid_range
            )

        super().__init__(
            message=f"Invalid configuration for parameter '{parameter_name}'",
            component=component,
            suggested_action=suggested_action,
            error_code="INVALID_CONFIGURATION",
            diagnostic_data=diagnostic_data,
        )


class UnsupportedStencilError(ConfigurationError):
    """Exception raised when a stencil has no version for the array rank."""

    def __init__(self, stencil: str, ndim: int, supported: tuple[int, ...], component: str | None = None):
        self.stencil = stencil
        self.ndim = ndim
        self.supported = supported
        dims = ", ".join(f"{d}D" for d in supported)
        super().__init__(
            parameter_name="stencil",
            provided_value=stencil,
            component=component,
            reason=f"stencil {stencil} is not supported for {ndim}D arrays (supported: {dims})",
            suggested_action="Use Stencil.D21, D22, D33 or D71 for 3D arrays" if ndim == 3 else None,
        )


class DimensionMismatchError(SmoothingError):
    """Exception raised when array shapes do not match."""

    def __init__(
        self,
        array_name: str,
        provided_shape: tuple,
        expected_shape: tuple,
        component: str | None = None,
        context: str | None = None,
    ):
        self.array_name = array_name
        self.provided_shape = tuple(provided_shape)
        self.expected_shape = tuple(expected_shape)

        diagnostic_data = {
            "array_name": array_name,
            "provided_shape": str(self.provided_shape),
            "expected_shape": str(self.expected_shape),
            "dimension_mismatch": _describe_dimension_mismatch(self.provided_shape, self.expected_shape),
        }

        if context:
            diagnostic_data["context"] = context

        super().__init__(
            message=f"Dimension mismatch for {array_name}",
            component=component,
            suggested_action=_generate_dimension_suggestions(array_name, self.provided_shape, self.expected_shape),
            error_code="DIMENSION_MISMATCH",
            diagnostic_data=diagnostic_data,
        )


class ArrayAliasingError(SmoothingError):
    """Exception raised when an output array shares memory with an input array."""

    def __init__(self, input_name: str, output_name: str, component: str | None = None):
        super().__init__(
            message=f"Output array '{output_name}' shares memory with input array '{input_name}'",
            component=component,
            suggested_action=f"Pass a separate array for '{output_name}', e.g. {output_name} = {input_name}.copy()",
            error_code="ARRAY_ALIASING",
        )


# Helper functions for generating specific suggestions


def _type_name(expected_type: type | tuple) -> str:
    if isinstance(expected_type, tuple):
        return " or ".join(t.__name__ for t in expected_type)
    return expected_type.__name__


def _generate_configuration_suggestions(
    parameter_name: str,
    provided_value: Any,
    expected_type: type | tuple | None,
    valid_range: tuple | None,
) -> str:
    """Generate specific suggestions for configuration errors."""
    suggestions = []

    if expected_type and not isinstance(provided_value, expected_type):
        suggestions.append(f"Convert {parameter_name} to {_type_name(expected_type)}")

    if valid_range and isinstance(provided_value, (int, float)):
        if valid_range[0] is not None and provided_value <= valid_range[0]:
            suggestions.append(f"Increase {parameter_name} above {valid_range[0]}")
        elif valid_range[1] is not None and provided_value >= valid_range[1]:
            suggestions.append(f"Decrease {parameter_name} below {valid_range[1]}")

    if parameter_name in ("small", "tolerance") and isinstance(provided_value, (int, float)):
        if provided_value <= 0:
            suggestions.append("Tolerance must be positive")

    if parameter_name in ("niter", "npass") and isinstance(provided_value, (int, float)):
        if provided_value <= 0:
            suggestions.append(f"{parameter_name} must be at least 1")

    return " | ".join(suggestions) if suggestions else f"Check {parameter_name} value and try again"


def _describe_dimension_mismatch(provided_shape: tuple, expected_shape: tuple) -> str:
    """Describe the specific nature of dimension mismatch."""
    if len(provided_shape) != len(expected_shape):
        return f"Wrong number of dimensions: got {len(provided_shape)}, expected {len(expected_shape)}"

    mismatches = []
    for i, (provided, expected) in enumerate(zip(provided_shape, expected_shape, strict=False)):
        if provided != expected:
            mismatches.append(f"axis {i}: got {provided}, expected {expected}")

    return " | ".join(mismatches)


def _generate_dimension_suggestions(array_name: str, provided_shape: tuple, expected_shape: tuple) -> str:
    """Generate specific suggestions for dimension errors."""
    if len(provided_shape) < len(expected_shape):
        return f"Add missing dimensions to {array_name}: reshape or expand to {expected_shape}"
    elif len(provided_shape) > len(expected_shape):
        return f"Remove extra dimensions from {array_name}: reshape to {expected_shape}"
    else:
        return f"Allocate {array_name} with the shape of the input image: {expected_shape}"


# Convenience functions for common error scenarios


def validate_array_dimensions(
    array: np.ndarray, expected_shape: tuple, array_name: str, component: str | None = None
):
    """Validate that array has expected dimensions."""
    if array.shape != tuple(expected_shape):
        raise DimensionMismatchError(
            array_name=array_name,
            provided_shape=array.shape,
            expected_shape=expected_shape,
            component=component,
        )


def validate_parameter_value(
    value: Any,
    parameter_name: str,
    expected_type: type | tuple | None = None,
    valid_range: tuple | None = None,
    component: str | None = None,
):
    """
    Validate parameter value and type.

    ``valid_range`` is an open interval; ``None`` for either end means
    unbounded on that side.
    """
    if expected_type and not isinstance(value, expected_type):
        raise ConfigurationError(
            parameter_name=parameter_name,
            provided_value=value,
            expected_type=expected_type,
            component=component,
        )

    if valid_range and isinstance(value, (int, float)):
        low, high = valid_range
        if (low is not None and value <= low) or (high is not None and value >= high):
            raise ConfigurationError(
                parameter_name=parameter_name,
                provided_value=value,
                valid_range=valid_range,
                component=component,
            )


def validate_image_arrays(
    x: np.ndarray,
    y: np.ndarray,
    s: np.ndarray | None = None,
    ndims: tuple[int, ...] = (1, 2, 3),
    component: str | None = None,
):
    """Validate rank and shapes of input ``x``, output ``y`` and scale factors ``s``."""
    if x.ndim not in ndims:
        raise DimensionMismatchError(
            array_name="x",
            provided_shape=x.shape,
            expected_shape=(),
            component=component,
            context=f"supported ranks are {ndims}",
        )
    validate_array_dimensions(y, x.shape, "y", component=component)
    if s is not None:
        validate_array_dimensions(s, x.shape, "s", component=component)
