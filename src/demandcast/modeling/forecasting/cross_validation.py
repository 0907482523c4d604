"""
K-fold cross-validation for forecasters.

Every record lands in exactly one fold. Each fold is scored by training a fresh
clone of the model on the other folds and evaluating it on the held-out fold, so
the model passed in is never trained or mutated.

Example:
    ```python
    from demandcast.modeling.forecasting import CrossValidator, SpectralForecaster

    validator = CrossValidator(num_folds=5, shuffle=False)
    result = validator.validate_model(SpectralForecaster(window_size=5), history)

    print(f"MAPE: {result.mean_error:.3f} ± {result.std_dev_error:.3f}")
    print(f"Per fold: {result.fold_errors}")
    ```
"""

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np
from loguru import logger

from demandcast.config import CrossValidationSettings
from demandcast.data.observations import Observation, sort_observations

from .baselines import Forecaster
from .errors import InsufficientDataError, NoValidResultsError
from .evaluation import sample_std

MIN_FOLDS = 2
MAX_FOLDS = 10


@dataclass(frozen=True)
class CrossValidationResult:
    """
    Aggregated cross-validation scores.

    Attributes:
        mean_error: Mean MAPE over the folds that produced a score
        std_dev_error: Sample standard deviation of those scores (NaN with fewer than two)
        fold_errors: Per-fold MAPE for the scored folds, in fold order
        fold_sizes: Size of every fold, in fold order
        failed_folds: Indices of folds whose training failed or whose score was NaN
    """

    mean_error: float
    std_dev_error: float
    fold_errors: tuple[float, ...]
    fold_sizes: tuple[int, ...]
    failed_folds: tuple[int, ...] = ()

    @property
    def n_valid_folds(self) -> int:
        return len(self.fold_errors)


class CrossValidator:
    """
    K-fold cross-validator.

    Fold sizes are ``n // k`` with the first ``n % k`` folds receiving one extra
    record. With ``shuffle=True`` records are permuted by a generator seeded with
    ``seed`` on every call, so repeated calls produce identical folds. Training
    and test sets are put back in date order before use.

    Folds run sequentially unless ``max_workers > 1``; each fold owns its own
    model clone and data slices.

    Args:
        num_folds: Fold count k (clamped to [2, 10])
        shuffle: Permute records before partitioning
        seed: Seed for the permutation
        max_workers: Thread pool size for concurrent folds
    """

    def __init__(
        self,
        num_folds: int = 5,
        shuffle: bool = True,
        seed: int = 42,
        max_workers: int | None = None,
    ):
        self.num_folds = max(MIN_FOLDS, min(MAX_FOLDS, int(num_folds)))
        self.shuffle = shuffle
        self.seed = seed
        self.max_workers = max_workers

    @classmethod
    def from_config(cls, settings: CrossValidationSettings) -> "CrossValidator":
        return cls(**settings.model_dump())

    def partition(self, data: Sequence[Observation]) -> list[list[Observation]]:
        """
        Split records into ``num_folds`` disjoint folds covering every record.

        Raises:
            InsufficientDataError: If fewer than ``2 × num_folds`` records are given
        """
        data = list(data)
        n = len(data)
        if n < 2 * self.num_folds:
            raise InsufficientDataError(
                f"cross-validation with {self.num_folds} folds needs at least "
                f"{2 * self.num_folds} records, got {n}"
            )

        if self.shuffle:
            order = np.random.default_rng(self.seed).permutation(n)
            data = [data[i] for i in order]

        base, extra = divmod(n, self.num_folds)
        folds = []
        start = 0
        for i in range(self.num_folds):
            size = base + (1 if i < extra else 0)
            folds.append(data[start : start + size])
            start += size
        return folds

    def validate_model(self, model: Forecaster, data: Sequence[Observation]) -> CrossValidationResult:
        """
        Cross-validate a model.

        A fold whose training fails, or whose evaluation is NaN, is skipped and
        excluded from the aggregates.

        Args:
            model: Template model; only its clones are trained
            data: Records to partition

        Returns:
            CrossValidationResult over the scored folds

        Raises:
            InsufficientDataError: If fewer than ``2 × num_folds`` records are given
            NoValidResultsError: If no fold produced a score
        """
        folds = self.partition(data)
        logger.info(
            f"Cross-validating {model.model_name} with {self.num_folds} folds "
            f"on {sum(len(f) for f in folds)} records (shuffle={self.shuffle})"
        )

        if self.max_workers is not None and self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                scores = list(executor.map(lambda i: self._score_fold(model, folds, i), range(len(folds))))
        else:
            scores = [self._score_fold(model, folds, i) for i in range(len(folds))]

        fold_errors = [score for score in scores if score is not None]
        failed_folds = [i for i, score in enumerate(scores) if score is None]
        if not fold_errors:
            raise NoValidResultsError(
                f"all {self.num_folds} folds failed for {model.model_name}"
            )

        result = CrossValidationResult(
            mean_error=float(np.mean(fold_errors)),
            std_dev_error=sample_std(fold_errors),
            fold_errors=tuple(fold_errors),
            fold_sizes=tuple(len(f) for f in folds),
            failed_folds=tuple(failed_folds),
        )
        logger.info(
            f"Cross-validation complete: MAPE={result.mean_error:.4f} "
            f"(±{result.std_dev_error:.4f}) over {result.n_valid_folds} folds"
        )
        return result

    def _score_fold(self, model: Forecaster, folds: list[list[Observation]], index: int) -> float | None:
        training = sort_observations(
            obs for i, fold in enumerate(folds) if i != index for obs in fold
        )
        test = sort_observations(folds[index])

        candidate = model.clone()
        if not candidate.train(training):
            logger.debug(f"Fold {index}: training failed ({candidate.last_error_}), skipping")
            return None

        error = candidate.evaluate(test)
        if np.isnan(error):
            logger.debug(f"Fold {index}: evaluation returned NaN, skipping")
            return None

        logger.debug(f"Fold {index}: MAPE={error:.4f} (train={len(training)}, test={len(test)})")
        return float(error)
