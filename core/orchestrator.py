"""Replace the running container of a package with a freshly pulled image.

A deployment forks two independent branches, stopping the current container
and pulling the new image, and starts the replacement only when both branches
succeeded. The first failure ends the deployment immediately; the other
branch is left running and whatever it produces later is only logged. The
package stays locked until that branch settles.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger

from core.credentials import EnvCredentialsProvider, RegistryCredentials
from core.engine import ContainerEngine
from core.errors import RuntimeOperationError
from core.metrics import CONTAINERS_REPLACED_COUNTER, DEPLOYMENT_FAILURE_COUNTER
from core.schemas import ContainerInstance, DeploymentOutcome, DeploymentRequest


def _discard_straggler(task: "asyncio.Future[Any]") -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning(f"Ignoring late failure of abandoned deployment step: {exc}")
    else:
        logger.debug("Abandoned deployment step finished after the deployment failed")


async def join_all(
    *aws: Awaitable[Any], abandoned: Optional[List["asyncio.Future[Any]"]] = None
) -> List[Any]:
    """Await every awaitable concurrently and return their results in order.

    Raises the first failure as soon as it happens without cancelling the
    branches still running; their results are discarded. Those branches are
    appended to ``abandoned`` so the caller can wait for them to settle.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)

    failed = [t for t in tasks if t in done and t.exception() is not None]
    if failed:
        for task in pending:
            task.add_done_callback(_discard_straggler)
            if abandoned is not None:
                abandoned.append(task)
        # retrieve every exception so asyncio does not report them as unhandled
        for task in failed[1:]:
            logger.debug(f"Additional deployment failure: {task.exception()}")
        raise failed[0].exception()  # type: ignore[misc]

    return [t.result() for t in tasks]


class _PackageLock:
    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class DeploymentOrchestrator:
    def __init__(
        self,
        engine: ContainerEngine,
        docker_repo: str = "",
        credentials: Optional[Callable[[], RegistryCredentials]] = None,
    ):
        self.engine = engine
        self.docker_repo = docker_repo
        self.credentials = credentials or EnvCredentialsProvider()
        self._locks: Dict[str, _PackageLock] = {}

    @property
    def busy_packages(self) -> List[str]:
        """Packages with a deployment running or queued."""
        return list(self._locks)

    async def _acquire(self, package: str) -> None:
        entry = self._locks.get(package)
        if entry is None:
            entry = self._locks[package] = _PackageLock()
        elif entry.lock.locked():
            logger.info(f"Deployment of {package} queued behind a running one")

        entry.users += 1
        try:
            await entry.lock.acquire()
        except BaseException:
            self._leave(package, entry)
            raise

    def _leave(self, package: str, entry: _PackageLock) -> None:
        entry.users -= 1
        if entry.users == 0 and self._locks.get(package) is entry:
            del self._locks[package]

    def _release(self, package: str) -> None:
        entry = self._locks[package]
        entry.lock.release()
        self._leave(package, entry)

    def _release_when_settled(
        self, package: str, abandoned: List["asyncio.Future[Any]"]
    ) -> None:
        if not abandoned:
            self._release(package)
            return
        logger.debug(f"Holding {package} until abandoned deployment steps finish")
        settled = asyncio.gather(*abandoned, return_exceptions=True)
        settled.add_done_callback(lambda _: self._release(package))

    async def deploy(self, request: DeploymentRequest) -> DeploymentOutcome:
        """Run one deployment and report its single outcome.

        Deployments of the same package are serialised, including steps a
        failed deployment left running; distinct packages proceed
        independently.
        """
        await self._acquire(request.package)
        abandoned: List["asyncio.Future[Any]"] = []
        try:
            container = await self._replace(request, abandoned)
        except RuntimeOperationError as e:
            DEPLOYMENT_FAILURE_COUNTER.labels(stage=e.stage).inc()
            logger.error(f"Deployment of {request.image_reference} failed: {e}")
            return DeploymentOutcome.failed(str(e))
        finally:
            self._release_when_settled(request.package, abandoned)

        CONTAINERS_REPLACED_COUNTER.inc()
        logger.success(
            f"New image for {request.package} up and running on {container.id[:12]}"
        )
        return DeploymentOutcome.ok(container.id)

    async def _replace(
        self, request: DeploymentRequest, abandoned: List["asyncio.Future[Any]"]
    ) -> ContainerInstance:
        await join_all(
            self.stop_existing(request.package),
            self.pull(request),
            abandoned=abandoned,
        )
        return await self.start(request)

    async def stop_existing(self, package: str) -> List[str]:
        """Stop and remove every container started from exactly ``package``."""
        logger.debug(f"Stopping containers running {package}")
        containers = await self.engine.list_containers()
        matches = [c for c in containers if c.image == package]
        if not matches:
            logger.debug(f"No running containers found for {package}")
            return []

        for container in matches:
            await self.engine.stop_and_remove(container.id)
        return [c.id for c in matches]

    async def pull(self, request: DeploymentRequest) -> None:
        image = str(request.image_reference)
        logger.debug(f"Pulling new image for {image}")
        auth_config = self.credentials().auth_config(self.docker_repo)
        await self.engine.pull_image(image, auth_config=auth_config)

    async def start(self, request: DeploymentRequest) -> ContainerInstance:
        image = str(request.image_reference)
        logger.debug(f"Initializing new image {image} as {request.container_name}")
        return await self.engine.run_container(image, name=request.container_name)
