"""
Grid-search hyperparameter optimization.

Every candidate of the Cartesian product of a parameter grid is scored by
cross-validating a freshly constructed model with those parameters. Candidates
are independent (each owns its model instance and data copy), so they can be
evaluated on a thread pool; results are collected in enumeration order before
the best one is selected.

Example:
    ```python
    from demandcast.modeling.forecasting import HyperparameterOptimizer

    optimizer = HyperparameterOptimizer(num_folds=5)
    result = optimizer.optimize_parameters(
        "spectral",
        history,
        {"WindowSize": [5, 7, 14], "NumComponents": [2, 3]},
    )

    print(f"Best: {result.best_parameters} (MAPE={result.best_error:.3f})")
    for candidate in result.candidates:
        print(candidate.parameters, candidate.mean_error)
    ```
"""

import time
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from demandcast.config import OptimizerSettings
from demandcast.data.observations import Observation

from .cross_validation import CrossValidator
from .errors import InsufficientDataError, InvalidParameterError
from .registry import ForecasterRegistry, default_registry


@dataclass(frozen=True)
class CandidateResult:
    """Cross-validation score of one parameter combination."""

    parameters: dict[str, Any]
    mean_error: float
    std_dev_error: float = float("nan")
    failure: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.failure is None


@dataclass(frozen=True)
class OptimizationResult:
    """
    Outcome of a grid search.

    Attributes:
        model_kind: Registry tag the candidates were built from
        best_parameters: Parameters of the lowest-error candidate ({} if none succeeded)
        best_error: Its mean cross-validation MAPE (inf if none succeeded)
        candidates: Every evaluated candidate, in enumeration order
    """

    model_kind: str
    best_parameters: dict[str, Any]
    best_error: float
    candidates: tuple[CandidateResult, ...] = field(default_factory=tuple)

    @property
    def n_candidates(self) -> int:
        return len(self.candidates)


def enumerate_grid(parameter_grid: Mapping[str, Sequence[Any]]) -> list[dict[str, Any]]:
    """
    Cartesian product of a parameter grid by recursive backtracking.

    Key order is preserved and the last key varies fastest, so enumeration is
    deterministic. An empty grid yields a single empty candidate.

    Example:
        ```python
        enumerate_grid({"window_size": [5, 7], "num_components": [2, 3]})
        # [{'window_size': 5, 'num_components': 2},
        #  {'window_size': 5, 'num_components': 3},
        #  {'window_size': 7, 'num_components': 2},
        #  {'window_size': 7, 'num_components': 3}]
        ```
    """
    names = list(parameter_grid)
    candidates: list[dict[str, Any]] = []

    def backtrack(depth: int, current: dict[str, Any]) -> None:
        if depth == len(names):
            candidates.append(dict(current))
            return
        name = names[depth]
        for value in parameter_grid[name]:
            current[name] = value
            backtrack(depth + 1, current)
        current.pop(name, None)

    backtrack(0, {})
    return candidates


class HyperparameterOptimizer:
    """
    Grid search over forecaster parameters scored by cross-validated MAPE.

    The lowest mean error wins; ties go to the first candidate in enumeration
    order. A candidate that fails for any reason other than insufficient data,
    or that does not finish within ``timeout`` seconds, scores ``inf``.

    Args:
        num_folds: Folds per cross-validation
        parallel: Evaluate candidates on a thread pool
        max_workers: Thread pool size (None lets the executor decide)
        timeout: Seconds allowed for the whole batch of candidates
        registry: Registry used to construct models from a kind string
        shuffle: Shuffle records before partitioning into folds
        seed: Seed for the fold shuffle
    """

    def __init__(
        self,
        num_folds: int = 5,
        parallel: bool = True,
        max_workers: int | None = None,
        timeout: float | None = None,
        registry: ForecasterRegistry = default_registry,
        shuffle: bool = True,
        seed: int = 42,
    ):
        if timeout is not None and timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout}")

        self.validator = CrossValidator(num_folds=num_folds, shuffle=shuffle, seed=seed)
        self.parallel = parallel
        self.max_workers = max_workers
        self.timeout = timeout
        self.registry = registry

    @classmethod
    def from_config(
        cls, settings: OptimizerSettings, registry: ForecasterRegistry = default_registry
    ) -> "HyperparameterOptimizer":
        return cls(
            num_folds=settings.num_folds,
            parallel=settings.parallel,
            max_workers=settings.max_workers,
            timeout=settings.timeout_seconds,
            registry=registry,
        )

    @property
    def num_folds(self) -> int:
        return self.validator.num_folds

    def optimize_parameters(
        self,
        model_kind: str,
        data: Sequence[Observation],
        parameter_grid: Mapping[str, Sequence[Any]],
    ) -> OptimizationResult:
        """
        Find the best parameter combination for a model kind.

        Args:
            model_kind: Registry kind string (resolved forgivingly)
            data: Records to cross-validate on
            parameter_grid: Mapping of parameter name to candidate values

        Returns:
            OptimizationResult with the best candidate and every candidate's score

        Raises:
            InsufficientDataError: If there are too few records for cross-validation
            InvalidParameterError: If the grid produces no candidates
        """
        data = list(data)
        if len(data) < 2 * self.num_folds:
            raise InsufficientDataError(
                f"optimization with {self.num_folds} folds needs at least "
                f"{2 * self.num_folds} records, got {len(data)}"
            )

        candidates = enumerate_grid(parameter_grid)
        if not candidates:
            raise InvalidParameterError(f"parameter grid {dict(parameter_grid)} has no candidates")

        kind = self.registry.resolve(model_kind)
        logger.info(
            f"Optimizing {kind} over {len(candidates)} candidates "
            f"({'parallel' if self.parallel else 'sequential'}, {self.num_folds} folds)"
        )

        if self.parallel and len(candidates) > 1:
            results = self._evaluate_parallel(kind, data, candidates)
        else:
            results = self._evaluate_sequential(kind, data, candidates)

        best: CandidateResult | None = None
        for result in results:
            # strict < keeps the first candidate on ties
            if result.mean_error < (best.mean_error if best else float("inf")):
                best = result

        if best is None:
            logger.error(f"No candidate for {kind} produced a valid score")
            return OptimizationResult(kind, {}, float("inf"), tuple(results))

        logger.info(f"Best parameters for {kind}: {best.parameters} (MAPE={best.mean_error:.4f})")
        return OptimizationResult(kind, dict(best.parameters), best.mean_error, tuple(results))

    def _evaluate_candidate(
        self, kind: str, data: list[Observation], parameters: dict[str, Any]
    ) -> CandidateResult:
        model = self.registry.create(kind)
        try:
            model.set_parameters(parameters)
            cv = self.validator.validate_model(model, list(data))
        except InsufficientDataError:
            raise
        except Exception as e:
            logger.warning(f"Candidate {parameters} failed: {type(e).__name__}: {e}")
            return CandidateResult(parameters, float("inf"), failure=f"{type(e).__name__}: {e}")

        logger.debug(f"Candidate {parameters}: MAPE={cv.mean_error:.4f}")
        return CandidateResult(parameters, cv.mean_error, cv.std_dev_error)

    def _evaluate_sequential(
        self, kind: str, data: list[Observation], candidates: list[dict[str, Any]]
    ) -> list[CandidateResult]:
        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        results = []
        for parameters in candidates:
            if deadline is not None and time.monotonic() > deadline:
                results.append(_timed_out(parameters))
                continue
            results.append(self._evaluate_candidate(kind, data, parameters))
        return results

    def _evaluate_parallel(
        self, kind: str, data: list[Observation], candidates: list[dict[str, Any]]
    ) -> list[CandidateResult]:
        results: list[CandidateResult | None] = [None] * len(candidates)
        executor = ThreadPoolExecutor(max_workers=self.max_workers)
        try:
            futures = {
                executor.submit(self._evaluate_candidate, kind, data, parameters): i
                for i, parameters in enumerate(candidates)
            }
            done, not_done = wait(futures, timeout=self.timeout)

            for future in done:
                results[futures[future]] = future.result()
            for future in not_done:
                future.cancel()
                index = futures[future]
                results[index] = _timed_out(candidates[index])
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return results


def _timed_out(parameters: dict[str, Any]) -> CandidateResult:
    logger.warning(f"Candidate {parameters} did not finish before the timeout")
    return CandidateResult(parameters, float("inf"), failure="timed out")
