"""Repository credentials for image pulls.

Values are looked up in the process environment on every pull, so rotating
DOCKER_USERNAME / DOCKER_PASSWORD does not need a restart.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass(frozen=True)
class RegistryCredentials:
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_env(cls) -> "RegistryCredentials":
        return cls(
            username=os.getenv("DOCKER_USERNAME") or None,
            password=os.getenv("DOCKER_PASSWORD") or None,
        )

    def auth_config(self, server_address: str = "") -> Optional[Dict[str, str]]:
        """Build the docker SDK ``auth_config`` dict, or None for anonymous pulls.

        An empty ``server_address`` lets the engine use its default registry.
        """
        if not self.username:
            return None
        config = {"username": self.username, "password": self.password or ""}
        if server_address:
            config["serveraddress"] = server_address
        return config


class EnvCredentialsProvider:
    """Callable returning the current credentials from the environment."""

    def __call__(self) -> RegistryCredentials:
        return RegistryCredentials.from_env()
