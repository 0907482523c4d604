"""
Spectral (singular spectrum analysis) forecaster.

The series is embedded into overlapping windows (a Hankel-structured trajectory
matrix), the dominant directions of variation are extracted with power
iteration, and forecasts are produced by projecting the most recent window onto
those directions and reconstructing its next coordinate.

Training:
    1. Trajectory matrix X of shape (K, W) with K = n - W + 1
    2. Column means μ, centered matrix Xc = X - μ
    3. Covariance C = Xcᵀ Xc / (K - 1), shape (W, W)
    4. Top r eigenvectors of C by power iteration, deflating C -= λ·v·vᵀ
       between components

Forecasting (one step):
    scores_j = v_j · (window - μ)
    ŷ = μ[W-1] + Σ_j scores_j · v_j[W-1]

Example:
    ```python
    from demandcast.modeling.forecasting import SpectralForecaster

    model = SpectralForecaster(window_size=7, num_components=3)
    if model.train(history):
        points = model.predict(history[-7:], horizon=14)
    else:
        print(f"Training failed: {model.last_error_}")
    ```
"""

from typing import Any

import numpy as np
from loguru import logger
from numpy.typing import NDArray

from demandcast.config import SpectralSettings

from .baselines import BaseForecaster
from .errors import InsufficientDataError, NumericInstabilityError, ResourceExhaustionError

MIN_WINDOW_SIZE = 2
MAX_WINDOW_SIZE = 30

# Below this norm A·v is treated as zero (constant series or fully deflated matrix)
_NULL_NORM = 1e-12


def trajectory_matrix(values: NDArray[np.floating], window_size: int) -> NDArray[np.floating]:
    """
    Embed a series into its trajectory (Hankel) matrix.

    Args:
        values: Series of length n
        window_size: Window length W (1 <= W <= n)

    Returns:
        Array of shape (n - W + 1, W) whose row k is values[k:k+W]

    Raises:
        ValueError: If window_size is out of range
    """
    values = np.asarray(values, dtype=np.float64)
    if not 1 <= window_size <= len(values):
        raise ValueError(f"window_size must be in [1, {len(values)}], got {window_size}")

    return np.lib.stride_tricks.sliding_window_view(values, window_size).copy()


def covariance_matrix(centered: NDArray[np.floating]) -> NDArray[np.floating]:
    """
    Covariance of the columns of an already centered (K, W) matrix.

    Returns:
        Array of shape (W, W): Xcᵀ Xc / (K - 1)

    Raises:
        ValueError: If the matrix has fewer than two rows
    """
    rows = centered.shape[0]
    if rows < 2:
        raise ValueError(f"need at least 2 rows to compute covariance, got {rows}")

    return centered.T @ centered / (rows - 1)


def power_iteration(
    matrix: NDArray[np.floating],
    max_iterations: int = 100,
    tolerance: float = 1e-7,
    rng: np.random.Generator | None = None,
) -> tuple[NDArray[np.floating], float, bool]:
    """
    Dominant eigenvector of a symmetric matrix by power iteration.

    Starts from a random unit vector, repeatedly multiplies and renormalizes,
    and stops once the L1 change between successive vectors drops below
    ``tolerance``. A matrix that maps the current vector to (numerically) zero
    has that vector as an eigenvector with eigenvalue 0, which is reported as
    converged.

    Args:
        matrix: Symmetric (W, W) matrix
        max_iterations: Iteration budget
        tolerance: Convergence threshold on the L1 change
        rng: Random generator for the starting vector (seeded for reproducibility)

    Returns:
        Tuple of (unit eigenvector, Rayleigh-quotient eigenvalue, converged)
    """
    rng = rng if rng is not None else np.random.default_rng(42)
    size = matrix.shape[0]

    vector = rng.uniform(-0.5, 0.5, size=size)
    norm = np.linalg.norm(vector)
    vector = vector / norm if norm > 0 else np.full(size, 1.0 / np.sqrt(size))

    converged = False
    for _ in range(max_iterations):
        product = matrix @ vector
        norm = np.linalg.norm(product)
        if norm < _NULL_NORM:
            converged = True
            break

        candidate = product / norm
        change = float(np.sum(np.abs(candidate - vector)))
        vector = candidate
        if change < tolerance:
            converged = True
            break

    eigenvalue = float(vector @ matrix @ vector)
    return vector, eigenvalue, converged


def deflate(
    matrix: NDArray[np.floating], eigenvalue: float, eigenvector: NDArray[np.floating]
) -> NDArray[np.floating]:
    """Remove an eigenpair's contribution: A - λ·v·vᵀ."""
    return matrix - eigenvalue * np.outer(eigenvector, eigenvector)


class SpectralForecaster(BaseForecaster):
    """
    SSA-style forecaster built on trajectory-matrix embedding and power iteration.

    Parameters are clamped rather than rejected: ``window_size`` to [2, 30] and
    ``num_components`` to [1, window_size].

    Training requires at least ``2 × window_size`` observations. Series longer
    than ``max_series_length`` fail with ResourceExhaustionError before any
    matrix is allocated.

    Args:
        window_size: Embedding window W
        num_components: Number of eigenvectors r
        interval_std_floor: Minimum std used for confidence intervals
        max_iterations: Power iteration budget per component
        tolerance: Power iteration convergence threshold (L1 change)
        seed: Seed for the power iteration starting vectors
        strict_convergence: Fail training when a component does not converge
            (otherwise a warning is logged and the last iterate is used)
        max_series_length: Largest series train() accepts

    Attributes:
        means_: Column means of the trajectory matrix, shape (W,)
        eigenvectors_: Unit eigenvectors, shape (min(r, W), W)
        eigenvalues_: Matching eigenvalues (diagnostics only)
        converged_: Per-component convergence flags
    """

    model_kind = "spectral"
    DEFAULT_PARAMETERS = {"window_size": 7, "num_components": 3, "interval_std_floor": 1.0}

    def __init__(
        self,
        window_size: int = 7,
        num_components: int = 3,
        interval_std_floor: float = 1.0,
        max_iterations: int = 100,
        tolerance: float = 1e-7,
        seed: int = 42,
        strict_convergence: bool = False,
        max_series_length: int = 100_000,
    ):
        super().__init__(interval_std_floor=interval_std_floor)
        if max_iterations <= 0:
            raise ValueError(f"max_iterations must be > 0, got {max_iterations}")
        if tolerance <= 0:
            raise ValueError(f"tolerance must be > 0, got {tolerance}")

        self.window_size = _clamp(int(window_size), MIN_WINDOW_SIZE, MAX_WINDOW_SIZE)
        self.num_components = _clamp(int(num_components), 1, self.window_size)
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.seed = seed
        self.strict_convergence = strict_convergence
        self.max_series_length = max_series_length

        self.means_: NDArray[np.floating] | None = None
        self.eigenvectors_: NDArray[np.floating] | None = None
        self.eigenvalues_: NDArray[np.floating] | None = None
        self.converged_: list[bool] | None = None

    @classmethod
    def from_config(cls, settings: SpectralSettings) -> "SpectralForecaster":
        return cls(**settings.model_dump())

    @property
    def window_length(self) -> int:
        return self.window_size

    def min_training_size(self) -> int:
        return 2 * self.window_size

    def get_parameters(self) -> dict[str, float]:
        return {
            "window_size": self.window_size,
            "num_components": self.num_components,
            "interval_std_floor": self.interval_std_floor,
        }

    def _apply_parameter(self, name: str, value: float) -> None:
        if name == "window_size":
            self.window_size = _clamp(int(value), MIN_WINDOW_SIZE, MAX_WINDOW_SIZE)
            self.num_components = _clamp(self.num_components, 1, self.window_size)
        elif name == "num_components":
            self.num_components = _clamp(int(value), 1, self.window_size)
        else:
            self.interval_std_floor = max(0.0, value)

    def clone(self) -> "SpectralForecaster":
        return SpectralForecaster(
            window_size=self.window_size,
            num_components=self.num_components,
            interval_std_floor=self.interval_std_floor,
            max_iterations=self.max_iterations,
            tolerance=self.tolerance,
            seed=self.seed,
            strict_convergence=self.strict_convergence,
            max_series_length=self.max_series_length,
        )

    def _fit(self, values: NDArray[np.floating]) -> dict[str, Any]:
        n = len(values)
        window = self.window_size
        if n > self.max_series_length:
            raise ResourceExhaustionError(
                f"series of length {n} exceeds max_series_length={self.max_series_length}"
            )
        if n < 2 * window:
            raise InsufficientDataError(f"need at least {2 * window} observations, got {n}")

        trajectory = trajectory_matrix(values, window)
        means = trajectory.mean(axis=0)
        covariance = covariance_matrix(trajectory - means)
        logger.debug(f"Trajectory matrix {trajectory.shape}, covariance {covariance.shape}")

        rng = np.random.default_rng(self.seed)
        n_components = min(self.num_components, window)
        eigenvectors, eigenvalues, converged = [], [], []
        for component in range(n_components):
            vector, eigenvalue, did_converge = power_iteration(
                covariance, self.max_iterations, self.tolerance, rng
            )
            if not np.all(np.isfinite(vector)) or not np.isfinite(eigenvalue):
                raise NumericInstabilityError(
                    f"power iteration produced non-finite values for component {component + 1}"
                )
            if not did_converge:
                message = (
                    f"Component {component + 1}/{n_components} did not converge within "
                    f"{self.max_iterations} iterations"
                )
                if self.strict_convergence:
                    raise NumericInstabilityError(message)
                logger.warning(message)

            eigenvectors.append(vector)
            eigenvalues.append(eigenvalue)
            converged.append(did_converge)
            covariance = deflate(covariance, eigenvalue, vector)

        logger.debug(f"Eigenvalues: {np.round(eigenvalues, 4).tolist()}")
        return {
            "means_": means,
            "eigenvectors_": np.vstack(eigenvectors),
            "eigenvalues_": np.asarray(eigenvalues),
            "converged_": converged,
        }

    def _forecast_one_step(self, window: NDArray[np.floating]) -> float:
        scores = self.eigenvectors_ @ (window - self.means_)
        return float(self.means_[-1] + scores @ self.eigenvectors_[:, -1])


def _clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))
