from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class ImageReference:
    package: str
    version: Optional[str] = None

    def __str__(self) -> str:
        if self.version:
            return f"{self.package}:{self.version}"
        return self.package


class DeploymentRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    package: str = Field(..., min_length=1, description="Image name, optionally namespaced")
    version: Optional[str] = Field(None, description="Tag to pull, engine default when absent")

    @property
    def image_reference(self) -> ImageReference:
        return ImageReference(self.package, self.version)

    @property
    def container_name(self) -> str:
        """Name for the new container: the package without its namespace."""
        return self.package.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class ContainerInstance:
    id: str
    image: str
    name: Optional[str] = None
    state: Optional[str] = None


@dataclass(frozen=True)
class DeploymentOutcome:
    success: bool
    reason: Optional[str] = None
    container_id: Optional[str] = None

    @classmethod
    def ok(cls, container_id: Optional[str] = None) -> "DeploymentOutcome":
        return cls(success=True, container_id=container_id)

    @classmethod
    def failed(cls, reason: str) -> "DeploymentOutcome":
        return cls(success=False, reason=reason)
