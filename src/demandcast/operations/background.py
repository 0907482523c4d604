"""
Background training on a worker thread.

Training a forecaster can take long enough to block an interactive caller.
``BackgroundTrainer`` runs ``model.train`` on a small thread pool and exposes
it both as a ``concurrent.futures.Future`` and as an awaitable for asyncio
callers. A single model instance must not be trained by two jobs at once;
the default single worker serializes jobs.

Example:
    ```python
    import asyncio
    from demandcast.operations import BackgroundTrainer

    with BackgroundTrainer() as trainer:
        future = trainer.submit(model, history)
        ...
        trained = future.result()

    async def retrain():
        with BackgroundTrainer() as trainer:
            return await trainer.train_async(model, history, timeout=30)

    asyncio.run(retrain())
    ```
"""

import asyncio
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor

from loguru import logger

from demandcast.data.observations import Observation
from demandcast.modeling.forecasting.baselines import Forecaster


class BackgroundTrainer:
    """
    Thread-pool backed trainer.

    Args:
        max_workers: Number of concurrent training jobs
    """

    def __init__(self, max_workers: int = 1):
        if max_workers <= 0:
            raise ValueError(f"max_workers must be > 0, got {max_workers}")

        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="demandcast-train"
        )

    def submit(self, model: Forecaster, data: Sequence[Observation]) -> Future:
        """
        Schedule ``model.train(data)``.

        The returned future resolves to the boolean train() result. A job that
        has not started yet can be cancelled with ``future.cancel()``.
        """
        return self._executor.submit(self._train, model, list(data))

    async def train_async(
        self,
        model: Forecaster,
        data: Sequence[Observation],
        timeout: float | None = None,
    ) -> bool:
        """
        Train on the worker pool without blocking the event loop.

        Returns:
            The train() result, or False if ``timeout`` seconds elapse first.
            A job that already started keeps running after a timeout; its result
            is discarded.
        """
        loop = asyncio.get_running_loop()
        job = loop.run_in_executor(self._executor, self._train, model, list(data))
        try:
            return await asyncio.wait_for(job, timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Background training of {model.model_name} timed out after {timeout}s")
            return False

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting jobs; pending jobs that have not started are cancelled."""
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def __enter__(self) -> "BackgroundTrainer":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown(wait=True)

    @staticmethod
    def _train(model: Forecaster, data: list[Observation]) -> bool:
        logger.info(f"Background training of {model.model_name} on {len(data)} observations")
        trained = model.train(data)
        if not trained:
            logger.warning(f"Background training of {model.model_name} failed: {model.last_error_}")
        return trained
