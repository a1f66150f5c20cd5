"""Process configuration read from the environment (and a local .env file)."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_SERVER_PORT = 3009
DEFAULT_LOG_FILE = "deploy_webhook.log"


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _as_int(name: str, value: Optional[str], default: Optional[int]) -> Optional[int]:
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class Settings:
    server_host: str = "0.0.0.0"  # nosec
    server_port: int = DEFAULT_SERVER_PORT
    docker_repo: str = ""
    docker_machine: str = "default"
    machine_discovery: bool = True
    log_level: str = "DEBUG"
    log_file: Optional[str] = DEFAULT_LOG_FILE
    metrics_port: Optional[int] = None

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        if load_env_file:
            load_dotenv(Path(".env"))

        return cls(
            server_host=os.getenv("SERVER_HOST", cls.server_host),
            server_port=_as_int("SERVER_PORT", os.getenv("SERVER_PORT"), DEFAULT_SERVER_PORT),
            docker_repo=os.getenv("DOCKER_REPO", ""),
            docker_machine=os.getenv("DOCKER_MACHINE", cls.docker_machine),
            machine_discovery=_as_bool(os.getenv("DOCKER_MACHINE_DISCOVERY"), True),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            # LOG_FILE="" disables the file sink
            log_file=os.getenv("LOG_FILE", DEFAULT_LOG_FILE) or None,
            metrics_port=_as_int("METRICS_PORT", os.getenv("METRICS_PORT"), None),
        )
