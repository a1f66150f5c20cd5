import sys

import uvicorn
from loguru import logger
from prometheus_client import start_http_server

from api.server import create_app
from core.config import Settings
from core.endpoint import create_client, resolve_endpoint
from core.engine import ContainerEngine
from core.errors import EndpointResolutionError
from core.logs import configure_logging
from core.orchestrator import DeploymentOrchestrator


def build_app(settings: Settings):
    if settings.machine_discovery:
        endpoint = resolve_endpoint(settings.docker_machine)
        client = create_client(endpoint)
    else:
        logger.debug("docker-machine discovery disabled, using environment")
        client = create_client()

    engine = ContainerEngine(client)
    orchestrator = DeploymentOrchestrator(engine, docker_repo=settings.docker_repo)
    return create_app(orchestrator)


def main():
    try:
        settings = Settings.from_env()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    configure_logging(settings.log_level, settings.log_file)
    logger.info("Booting deploy webhook server")

    try:
        app = build_app(settings)
    except EndpointResolutionError as e:
        logger.critical(f"Container engine unavailable: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Fatal error during startup: {e}")
        sys.exit(1)

    if settings.metrics_port:
        start_http_server(settings.metrics_port)
        logger.info(f"Metrics available on port {settings.metrics_port}")

    logger.info(f"Deploy webhook server is listening on port {settings.server_port}")
    uvicorn.run(app, host=settings.server_host, port=settings.server_port, log_level="info")


if __name__ == "__main__":
    main()
