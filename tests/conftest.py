# tests/conftest.py
import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import MagicMock, patch

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.credentials import RegistryCredentials  # noqa: E402
from core.errors import (  # noqa: E402
    RuntimeListError,
    RuntimePullError,
    RuntimeRunError,
    RuntimeStopError,
)
from core.schemas import ContainerInstance  # noqa: E402


# ---------------------------------------------------------------------------
# Patch docker for all tests
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def patch_docker():
    """Prevent docker.from_env() from contacting the host."""
    fake_client = MagicMock()
    fake_client.containers = MagicMock()
    fake_client.images = MagicMock()

    with patch("docker.from_env", return_value=fake_client):
        yield fake_client


# ---------------------------------------------------------------------------
# In-memory engine used by orchestrator and webhook tests
# ---------------------------------------------------------------------------
class FakeEngine:
    """Records calls and lets tests fail or hold individual operations."""

    def __init__(self, containers: Optional[List[ContainerInstance]] = None):
        self.containers = list(containers or [])
        self.calls: List[tuple] = []
        self.fail: Dict[str, Exception] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.images: List[List[str]] = [["org/svc:latest"]]

    async def _gate(self, op: str):
        gate = self.gates.get(op)
        if gate is not None:
            await gate.wait()
        if op in self.fail:
            raise self.fail[op]

    async def list_containers(self):
        self.calls.append(("list",))
        await self._gate("list")
        return list(self.containers)

    async def list_images(self):
        return self.images

    async def stop_and_remove(self, container_id):
        self.calls.append(("stop", container_id))
        await self._gate("stop")
        self.containers = [c for c in self.containers if c.id != container_id]

    async def pull_image(self, image, auth_config=None):
        self.calls.append(("pull", image, auth_config))
        await self._gate("pull")

    async def run_container(self, image, name):
        self.calls.append(("run", image, name))
        await self._gate("run")
        instance = ContainerInstance(id=f"new-{name}", image=image, name=name, state="created")
        self.containers.append(instance)
        return instance

    def ops(self):
        return [c[0] for c in self.calls]


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def credentials():
    return lambda: RegistryCredentials(username="deployer", password="s3cret")


@pytest.fixture
def runtime_errors():
    return {
        "list": RuntimeListError("Could not list containers: engine down"),
        "stop": RuntimeStopError("Could not stop container abc: conflict"),
        "pull": RuntimePullError("Could not pull org/svc: unauthorized"),
        "run": RuntimeRunError("Could not run org/svc as svc: name in use"),
    }
