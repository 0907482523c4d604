"""
Model descriptor persistence.

A descriptor records what is needed to rebuild a forecaster: its kind and its
parameter mapping, plus a name, a version and a creation time. Trained state
is not persisted; a restored model is retrained on fresh data.

Files are JSON, named ``<model_name>_v<version>.json``.

Example:
    ```python
    from demandcast.io import ModelStore

    store = ModelStore("models/")
    store.save(model, "store-42", version="2.0")

    descriptor = store.load("store-42", version="2.0")
    restored = store.restore(descriptor)  # untrained, parameters applied
    restored.train(history)
    ```
"""

from datetime import datetime, timezone
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

from demandcast.modeling.forecasting.baselines import Forecaster
from demandcast.modeling.forecasting.registry import ForecasterRegistry, default_registry

VERSION_SEPARATOR = "_v"


class ModelDescriptor(BaseModel):
    """Serializable description of a forecaster."""

    model_config = ConfigDict(protected_namespaces=())

    model_name: str = Field(..., min_length=1, description="Name the model is stored under")
    version: str = Field(default="1.0", min_length=1, description="Model version")
    created: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Creation time (UTC)"
    )
    model_kind: str = Field(..., min_length=1, description="Registry kind tag")
    parameters: dict[str, float] = Field(default_factory=dict, description="Model parameters")

    @field_validator("model_name", "version")
    @classmethod
    def validate_path_safe(cls, v: str) -> str:
        if "/" in v or "\\" in v:
            raise ValueError(f"must not contain path separators, got {v}")
        return v

    @classmethod
    def from_model(cls, model: Forecaster, model_name: str, version: str = "1.0") -> "ModelDescriptor":
        return cls(
            model_name=model_name,
            version=version,
            model_kind=model.model_kind,
            parameters=model.get_parameters(),
        )

    @property
    def file_name(self) -> str:
        return f"{self.model_name}{VERSION_SEPARATOR}{self.version}.json"

    def __str__(self) -> str:
        parameters = ", ".join(f"{k}={v:g}" for k, v in self.parameters.items())
        return (
            f"Model: {self.model_name} (v{self.version})\n"
            f"Kind: {self.model_kind}\n"
            f"Created: {self.created:%Y-%m-%d %H:%M:%S}\n"
            f"Parameters: {parameters}"
        )


class ModelStore:
    """
    Directory of model descriptors.

    Args:
        directory: Where descriptor files live (created if missing)
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def save(self, model: Forecaster, model_name: str, version: str = "1.0") -> Path:
        """
        Write a model's descriptor, replacing any file with the same name and version.

        Returns:
            Path of the written file
        """
        descriptor = ModelDescriptor.from_model(model, model_name, version)
        path = self.directory / descriptor.file_name
        path.write_text(descriptor.model_dump_json(indent=2))
        logger.info(f"Saved {model.model_name} as {model_name} v{version} to {path}")
        return path

    def load(self, model_name: str, version: str = "1.0") -> ModelDescriptor:
        """
        Read a descriptor.

        Raises:
            FileNotFoundError: If no descriptor exists for the name and version
            pydantic.ValidationError: If the file is not a valid descriptor
        """
        path = self.directory / f"{model_name}{VERSION_SEPARATOR}{version}.json"
        if not path.exists():
            raise FileNotFoundError(f"Model file not found: {path}")

        descriptor = ModelDescriptor.model_validate_json(path.read_text())
        logger.info(f"Loaded {model_name} v{version} from {path}")
        return descriptor

    def available_versions(self, model_name: str) -> list[str]:
        """Versions stored for ``model_name``, sorted."""
        prefix = f"{model_name}{VERSION_SEPARATOR}"
        return sorted(
            path.stem[len(prefix) :]
            for path in self.directory.glob(f"{prefix}*.json")
            if path.stem.startswith(prefix)
        )

    def restore(
        self, descriptor: ModelDescriptor, registry: ForecasterRegistry = default_registry
    ) -> Forecaster:
        """Build an untrained forecaster of the descriptor's kind with its parameters applied."""
        model = registry.create(descriptor.model_kind)
        model.set_parameters(descriptor.parameters)
        logger.debug(f"Restored {descriptor.model_name} v{descriptor.version} as {model!r}")
        return model
