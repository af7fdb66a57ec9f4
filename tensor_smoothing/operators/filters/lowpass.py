"""
Isotropic low-pass filter applied in the Fourier domain.

The radial amplitude response is 1 for wavenumbers below
``kupper - kdelta/2`` and 0 above ``kupper + kdelta/2`` (cycles per
sample). Across the transition band the response follows the normalized
cumulative integral of a Kaiser window, with the Kaiser shape parameter
chosen from the allowed ripple ``aerror``.

Images are padded by replicating their edge samples before transforming,
which extrapolates them with zero slope and keeps the circular
convolution of the FFT away from the image interior.

References:
    - Kaiser (1974): Nonrecursive digital filter design using the I0-sinh window function
    - Oppenheim & Schafer (2009): Discrete-Time Signal Processing, §7.5
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import scipy.fft
import scipy.signal

from tensor_smoothing.utils.exceptions import ConfigurationError, validate_image_arrays, validate_parameter_value
from tensor_smoothing.utils.logging import get_logger, log_lowpass_cache

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = get_logger(__name__)

_TAPER_SAMPLES = 1025

# kaiserord needs at least 8 dB of stop-band attenuation
_MAX_AERROR = 10.0 ** (-8.0 / 20.0)


class IsotropicLowpassFilter:
    """
    Radially symmetric low-pass filter.

    Args:
        kupper: Center of the transition band, cycles/sample, in (0, 0.5]
        kdelta: Width of the transition band, cycles/sample, > 0
        aerror: Maximum amplitude error in pass and stop bands, in (0, 0.398)
    """

    def __init__(self, kupper: float, kdelta: float, aerror: float = 0.01):
        validate_parameter_value(kupper, "kupper", valid_range=(0.0, 0.5 + 1e-12), component="IsotropicLowpassFilter")
        validate_parameter_value(kdelta, "kdelta", valid_range=(0.0, None), component="IsotropicLowpassFilter")
        validate_parameter_value(aerror, "aerror", valid_range=(0.0, _MAX_AERROR), component="IsotropicLowpassFilter")
        self.kupper = float(kupper)
        self.kdelta = float(kdelta)
        self.aerror = float(aerror)
        # Transition width is given relative to Nyquist (0.5 cycles/sample)
        numtaps, self.beta = scipy.signal.kaiserord(-20.0 * np.log10(self.aerror), 2.0 * self.kdelta)
        self.pad = numtaps // 2 + 1

        # Tabulated taper: cumulative Kaiser window over [-1, 1]
        t = np.linspace(-1.0, 1.0, _TAPER_SAMPLES)
        window = scipy.signal.windows.kaiser(_TAPER_SAMPLES, self.beta)
        cumulative = np.concatenate(([0.0], np.cumsum(0.5 * (window[1:] + window[:-1]) * np.diff(t))))
        self._taper_t = t
        self._taper = 1.0 - cumulative / cumulative[-1]

    def response(self, k: NDArray) -> NDArray:
        """Amplitude response at radial wavenumbers ``k`` (cycles/sample)."""
        t = (np.asarray(k, dtype=np.float64) - self.kupper) / (0.5 * self.kdelta)
        return np.interp(t, self._taper_t, self._taper, left=1.0, right=0.0)

    def apply(self, x: NDArray, y: NDArray) -> NDArray:
        """
        Low-pass filter ``x`` into ``y``; ``x`` and ``y`` may be the same array.

        Returns:
            y
        """
        validate_image_arrays(x, y, component="IsotropicLowpassFilter")
        padded = np.pad(np.asarray(x, dtype=np.float64), self.pad, mode="edge")
        shape = padded.shape

        k2 = np.zeros(shape[:-1] + (shape[-1] // 2 + 1,))
        for axis, n in enumerate(shape):
            k = scipy.fft.rfftfreq(n) if axis == len(shape) - 1 else scipy.fft.fftfreq(n)
            view = [1] * len(shape)
            view[axis] = -1
            k2 = k2 + k.reshape(view) ** 2

        spectrum = scipy.fft.rfftn(padded)
        spectrum *= self.response(np.sqrt(k2))
        filtered = scipy.fft.irfftn(spectrum, s=shape)

        interior = tuple(slice(self.pad, self.pad + n) for n in x.shape)
        y[...] = filtered[interior]
        return y

    def __repr__(self) -> str:
        return f"IsotropicLowpassFilter(kupper={self.kupper}, kdelta={self.kdelta}, aerror={self.aerror})"


class LowpassFilterCache:
    """
    Lazily built low-pass filter keyed by its maximum passed wavenumber.

    For ``kmax`` the filter uses ``kdelta = 0.5 - kmax`` and
    ``kupper = kmax + kdelta/2``, so wavenumbers up to ``kmax`` pass and
    the response reaches zero at Nyquist. The filter is rebuilt only when
    ``kmax`` changes.

    Not thread safe: concurrent callers with different ``kmax`` must
    serialize access.
    """

    def __init__(self, aerror: float = 0.01):
        self._aerror = aerror
        self._kmax: float | None = None
        self._filter: IsotropicLowpassFilter | None = None

    @property
    def kmax(self) -> float | None:
        """``kmax`` of the cached filter, or None if nothing is cached."""
        return self._kmax

    @property
    def filter(self) -> IsotropicLowpassFilter | None:
        return self._filter

    def get(self, kmax: float) -> IsotropicLowpassFilter:
        """Return the filter for ``kmax``, building it if needed."""
        if not isinstance(kmax, (int, float)) or not 0.0 < kmax < 0.5:
            raise ConfigurationError("kmax", kmax, valid_range=(0.0, 0.5), component="LowpassFilterCache")
        hit = self._filter is not None and self._kmax == kmax
        if not hit:
            kdelta = 0.5 - kmax
            kupper = kmax + 0.5 * kdelta
            self._filter = IsotropicLowpassFilter(kupper, kdelta, self._aerror)
            self._kmax = kmax
        log_lowpass_cache(logger, kmax, hit)
        return self._filter

    def invalidate(self):
        """Drop the cached filter."""
        self._kmax = None
        self._filter = None
