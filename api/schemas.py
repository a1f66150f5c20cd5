from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from core.schemas import DeploymentRequest


class PackageReleased(BaseModel):
    """Body of a package release notification."""

    model_config = ConfigDict(extra="ignore")

    package: str = Field(..., min_length=1)
    version: Optional[str] = None
    released: Optional[str] = Field(None, description="Release timestamp, not used")
    release_notes: Optional[str] = Field(None, description="Not used")

    def to_request(self) -> DeploymentRequest:
        return DeploymentRequest(package=self.package, version=self.version)
