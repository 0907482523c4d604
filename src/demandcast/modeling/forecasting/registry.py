"""
Model-kind registry.

Maps a closed set of kind tags (and aliases) to zero-argument constructors.
Lookup is forgiving so that kind strings coming from settings or persisted
descriptors resolve without exact spelling. Case, underscores, hyphens and
spaces are ignored, then:

1. Exact match on a tag or alias
2. Substring match, most specific first: the shortest name the query is a
   prefix of, then the longest name contained in the query, then the shortest
   name containing the query. Ties go to registration order.
3. The registry's default kind

Example:
    ```python
    from demandcast.modeling.forecasting.registry import default_registry

    default_registry.create("SSA")                      # SpectralForecaster
    default_registry.create("SeasonalNaiveForecaster")  # SeasonalNaiveForecaster
    default_registry.create("something-else")           # SpectralForecaster (default)
    ```
"""

import re
from collections.abc import Callable

from loguru import logger

from .baselines import (
    Forecaster,
    MovingAverageForecaster,
    NaiveForecaster,
    SeasonalNaiveForecaster,
)
from .spectral import SpectralForecaster

_SEPARATORS = re.compile(r"[^a-z0-9]")


def _normalize(kind: str) -> str:
    return _SEPARATORS.sub("", kind.lower())


class ForecasterRegistry:
    """Registry of forecaster constructors keyed by model kind."""

    def __init__(self, default_kind: str = "spectral"):
        self.default_kind = default_kind
        self._factories: dict[str, Callable[[], Forecaster]] = {}
        # normalized tag or alias -> tag, in registration order
        self._names: dict[str, str] = {}

    def register(
        self,
        kind: str,
        factory: Callable[[], Forecaster],
        aliases: tuple[str, ...] = (),
    ) -> None:
        """
        Register a constructor for a model kind.

        Raises:
            ValueError: If the kind or an alias is already registered
        """
        for name in (kind, *aliases):
            if _normalize(name) in self._names:
                raise ValueError(f"model kind '{name}' is already registered")

        self._factories[kind] = factory
        for name in (kind, *aliases):
            self._names[_normalize(name)] = kind

    @property
    def kinds(self) -> list[str]:
        return list(self._factories)

    def resolve(self, kind: str | None) -> str:
        """Resolve a possibly inexact kind string to a registered tag."""
        query = _normalize(kind or "")

        if query in self._names:
            return self._names[query]

        if query:
            match = self._closest(query)
            if match is not None:
                return match

        if self.default_kind not in self._factories:
            raise KeyError(f"default kind '{self.default_kind}' is not registered")
        logger.debug(f"Unknown model kind '{kind}', falling back to '{self.default_kind}'")
        return self.default_kind

    def _closest(self, query: str) -> str | None:
        names = list(self._names)
        for candidates, pick in (
            ([n for n in names if n.startswith(query)], min),
            ([n for n in names if n in query], max),
            ([n for n in names if query in n], min),
        ):
            if candidates:
                return self._names[pick(candidates, key=len)]
        return None

    def create(self, kind: str | None) -> Forecaster:
        """Construct a fresh, untrained forecaster for ``kind``."""
        return self._factories[self.resolve(kind)]()

    def __contains__(self, kind: str) -> bool:
        return _normalize(kind) in self._names


def _build_default_registry() -> ForecasterRegistry:
    registry = ForecasterRegistry(default_kind="spectral")
    registry.register("spectral", SpectralForecaster, aliases=("ssa",))
    registry.register("seasonal_naive", SeasonalNaiveForecaster)
    registry.register("moving_average", MovingAverageForecaster)
    registry.register("naive", NaiveForecaster)
    return registry


default_registry = _build_default_registry()
