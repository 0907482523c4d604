"""Model persistence."""

from .descriptors import ModelDescriptor, ModelStore

__all__ = ["ModelDescriptor", "ModelStore"]
