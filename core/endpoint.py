"""Discover the container engine endpoint from the local machine tool.

``docker-machine env <name>`` prints shell assignments such as::

    export DOCKER_TLS_VERIFY="1"
    export DOCKER_HOST="tcp://192.168.99.100:2376"
    export DOCKER_CERT_PATH="/home/me/.docker/machine/machines/default"
    # Run this command to configure your shell:

(or ``SET KEY=value`` / ``REM`` lines on Windows). The resolver turns that
output into settings, publishes them to the process environment and builds a
TLS-enabled docker client from them.
"""
from __future__ import annotations

import os
import re
import subprocess  # nosec
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import docker
from docker.tls import TLSConfig
from loguru import logger

from core.errors import EndpointResolutionError

CERT_FILES = ("ca.pem", "cert.pem", "key.pem")

_URI_RE = re.compile(r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.-]*)://(?P<host>[^:/]+):(?P<port>\d+)/?$")
_PREFIXES = ("export ", "SET ", "set ")


@dataclass
class RuntimeEndpoint:
    host: str
    port: Optional[str]
    cert_path: Optional[str]
    tls_verify: bool = True
    settings: Dict[str, str] = field(default_factory=dict)

    @property
    def base_url(self) -> str:
        # a DOCKER_HOST without a port is published with its scheme
        host = self.host.split("://", 1)[-1].rstrip("/")
        if self.port:
            return f"tcp://{host}:{self.port}"
        return f"tcp://{host}"


def _port_key(key: str) -> str:
    if key.endswith("_HOST"):
        return key[: -len("_HOST")] + "_PORT"
    return f"{key}_PORT"


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_env_output(output: str) -> Dict[str, str]:
    """Parse shell assignment lines into settings.

    Blank lines and comments are ignored. A ``scheme://host:port`` value is
    split in two: the key keeps the bare host and a sibling ``*_PORT`` key
    gets the port.
    """
    settings: Dict[str, str] = {}
    for raw in output.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or line.upper().split(" ", 1)[0] == "REM":
            continue
        for prefix in _PREFIXES:
            if line.startswith(prefix):
                line = line[len(prefix):].strip()
                break
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        value = _unquote(value.strip())
        if not key:
            continue

        match = _URI_RE.match(value)
        if match:
            settings[key] = match.group("host")
            settings[_port_key(key)] = match.group("port")
        else:
            settings[key] = value
    return settings


def run_discovery(command: Sequence[str]) -> str:
    try:
        completed = subprocess.run(  # nosec
            list(command), check=True, capture_output=True, text=True
        )
    except (OSError, subprocess.CalledProcessError) as e:
        stderr = getattr(e, "stderr", None)
        detail = f": {stderr.strip()}" if stderr else ""
        raise EndpointResolutionError(
            f"Discovery command {' '.join(command)!r} failed: {e}{detail}"
        ) from e
    return completed.stdout


def _check_cert_files(cert_path: str) -> List[str]:
    paths = [str(Path(cert_path) / name) for name in CERT_FILES]
    missing = [p for p in paths if not Path(p).is_file()]
    if missing:
        raise EndpointResolutionError(f"Missing TLS material: {', '.join(missing)}")
    return paths


def resolve_endpoint(
    machine: str = "default",
    command: Optional[Sequence[str]] = None,
    environ: Optional[Dict[str, str]] = None,
) -> RuntimeEndpoint:
    """Run discovery, publish the settings to ``environ`` and describe the endpoint."""
    command = command or ("docker-machine", "env", machine)
    environ = os.environ if environ is None else environ

    logger.debug(f"Setting environment from {' '.join(command)}:")
    settings = parse_env_output(run_discovery(command))
    for key, value in settings.items():
        logger.debug(f"  - {key} = {value}")
        environ[key] = value

    host = settings.get("DOCKER_HOST")
    if not host:
        raise EndpointResolutionError("Discovery output did not contain DOCKER_HOST")

    cert_path = settings.get("DOCKER_CERT_PATH")
    if not cert_path:
        raise EndpointResolutionError("Discovery output did not contain DOCKER_CERT_PATH")
    _check_cert_files(cert_path)

    return RuntimeEndpoint(
        host=host,
        port=settings.get("DOCKER_PORT"),
        cert_path=cert_path,
        tls_verify=settings.get("DOCKER_TLS_VERIFY", "1") not in ("", "0"),
        settings=settings,
    )


def tls_config(endpoint: RuntimeEndpoint) -> TLSConfig:
    ca, cert, key = _check_cert_files(endpoint.cert_path or "")
    return TLSConfig(client_cert=(cert, key), ca_cert=ca, verify=endpoint.tls_verify)


def create_client(endpoint: Optional[RuntimeEndpoint] = None) -> docker.DockerClient:
    """Build a docker client for ``endpoint``, or from the ambient environment."""
    if endpoint is None:
        return docker.from_env()
    return docker.DockerClient(base_url=endpoint.base_url, tls=tls_config(endpoint))
