# core/engine.py
import asyncio
from typing import Any, Dict, List, Optional

from docker.errors import NotFound
from loguru import logger

from core.errors import (
    RuntimeListError,
    RuntimePullError,
    RuntimeRunError,
    RuntimeStopError,
)
from core.schemas import ContainerInstance


class ContainerEngine:
    """Async facade over the docker SDK.

    Every SDK call is blocking, so each operation runs in a worker thread and
    failures are re-raised as the matching ``Runtime*Error``.
    """

    def __init__(self, client: Optional[Any] = None, stop_timeout: int = 10):
        self._client = client
        self.stop_timeout = stop_timeout

    def _ensure_client(self):
        if self._client is None:
            import docker

            self._client = docker.from_env()
        return self._client

    @property
    def client(self):
        return self._ensure_client()

    # -------------------------
    # LIST
    # -------------------------
    def _list_containers(self) -> List[ContainerInstance]:
        containers = self.client.containers.list(sparse=True)
        instances = []
        for c in containers:
            attrs = getattr(c, "attrs", None) or {}
            names = attrs.get("Names") or []
            instances.append(
                ContainerInstance(
                    id=attrs.get("Id") or c.id,
                    image=attrs.get("Image", ""),
                    name=names[0].lstrip("/") if names else None,
                    state=attrs.get("State"),
                )
            )
        return instances

    async def list_containers(self) -> List[ContainerInstance]:
        try:
            return await asyncio.to_thread(self._list_containers)
        except Exception as e:
            raise RuntimeListError(f"Could not list containers: {e}", e) from e

    def _list_images(self) -> List[List[str]]:
        return [image.tags for image in self.client.images.list()]

    async def list_images(self) -> List[List[str]]:
        """Tags of every image on the host; used to check the connection."""
        try:
            return await asyncio.to_thread(self._list_images)
        except Exception as e:
            raise RuntimeListError(f"Could not list images: {e}", e) from e

    # -------------------------
    # STOP
    # -------------------------
    def _stop_and_remove(self, container_id: str) -> None:
        try:
            c = self.client.containers.get(container_id)
            c.stop(timeout=self.stop_timeout)
            c.remove(force=True)
        except NotFound:
            # gone already, e.g. started with --rm
            logger.debug(f"Container {container_id[:12]} no longer exists")

    async def stop_and_remove(self, container_id: str) -> None:
        try:
            await asyncio.to_thread(self._stop_and_remove, container_id)
        except Exception as e:
            raise RuntimeStopError(
                f"Could not stop container {container_id[:12]}: {e}", e
            ) from e
        logger.info(f"Container {container_id[:12]} stopped and removed")

    # -------------------------
    # PULL
    # -------------------------
    def _pull(self, image: str, auth_config: Optional[Dict[str, str]]) -> None:
        stream = self.client.api.pull(
            image, stream=True, decode=True, auth_config=auth_config
        )
        for event in stream:
            if "error" in event:
                raise RuntimePullError(f"Could not pull {image}: {event['error']}")
            logger.debug(event)

    async def pull_image(
        self, image: str, auth_config: Optional[Dict[str, str]] = None
    ) -> None:
        """Pull ``image`` and return once the engine reports the stream finished."""
        try:
            await asyncio.to_thread(self._pull, image, auth_config)
        except RuntimePullError:
            raise
        except Exception as e:
            raise RuntimePullError(f"Could not pull {image}: {e}", e) from e
        logger.info(f"Image {image} pulled")

    # -------------------------
    # RUN
    # -------------------------
    def _run(self, image: str, name: str) -> ContainerInstance:
        container = self.client.containers.run(image, name=name, detach=True)
        return ContainerInstance(
            id=container.id,
            image=image,
            name=getattr(container, "name", None) or name,
            state=getattr(container, "status", None),
        )

    async def run_container(self, image: str, name: str) -> ContainerInstance:
        """Create and start a container; returns once the engine accepts it."""
        try:
            return await asyncio.to_thread(self._run, image, name)
        except Exception as e:
            raise RuntimeRunError(f"Could not run {image} as {name}: {e}", e) from e
