"""
mlservice Runtime - Data Models

Model descriptors and capability declarations used by service strategies.

A model descriptor is resolved by whoever builds the service, before the
strategy exists. The strategy only relies on its repository location.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, Union


# =============================================================================
# PROTOCOLS - What a strategy needs from a model descriptor
# =============================================================================


class ModelDescriptor(Protocol):
    """Anything exposing the model repository path."""

    repository: Path


# =============================================================================
# DATA CLASSES - Default descriptor and capabilities
# =============================================================================


@dataclass
class RepositoryModel:
    """
    Descriptor for a model stored in a repository directory.

    Backends needing more (topology files, vocabularies, ...) subclass this
    and add their own fields.
    """

    repository: Path

    def __post_init__(self) -> None:
        self.repository = Path(self.repository)

    @classmethod
    def from_path(cls, repository: Union[str, Path], **kwargs: Any) -> "RepositoryModel":
        """Build a descriptor from a repository path."""
        return cls(repository=Path(repository), **kwargs)


@dataclass(frozen=True)
class ServiceCapabilities:
    """Capability flags fixed per backend."""

    has_train: bool = False
    has_predict: bool = True
    # Online backends interleave training and prediction calls freely
    online: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {
            "has_train": self.has_train,
            "has_predict": self.has_predict,
            "online": self.online,
        }
