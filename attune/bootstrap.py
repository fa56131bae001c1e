"""Bootstrap module for easy Attune setup.

Builds the full engine from configuration, primarily for the hosting
application and quick testing. Handles:
- Loading configuration from TOML files and ATTUNE_* variables
- Configuring logging from the observability section
- Starting the Prometheus exporter when a metrics port is configured
- Creating the controller and the coach tool surface

Example usage:

    from attune.bootstrap import bootstrap

    controller, tools = bootstrap()

    await controller.start_session("session-123")
    result = await tools.collect_structured_data(
        "session-123", {"consent_given": True}
    )
"""

from attune.config import get_settings
from attune.config.settings import Settings
from attune.observability.logging import get_logger, setup_logging
from attune.observability.metrics import start_metrics_server
from attune.workflow.controller import SessionPhaseController
from attune.workflow.factory import create_controller
from attune.workflow.tools import WorkflowTools

logger = get_logger(__name__)


def bootstrap(
    settings: Settings | None = None,
) -> tuple[SessionPhaseController, WorkflowTools]:
    """Configure logging and build a controller with its tools.

    Args:
        settings: Settings to use (default: loaded from configuration)

    Returns:
        Tuple of (SessionPhaseController, WorkflowTools)

    Raises:
        ConfigurationError: If the configured phase graph is invalid
    """
    settings = settings or get_settings()
    log_config = settings.observability.logging
    setup_logging(
        level="DEBUG" if settings.debug else log_config.level,
        format=log_config.format,
        redact_pii=log_config.redact_pii,
    )

    metrics_config = settings.observability.metrics
    if metrics_config.enabled and metrics_config.port is not None:
        start_metrics_server(metrics_config.port)
        logger.info("metrics_exporter_started", port=metrics_config.port)

    controller = create_controller(settings)
    logger.info(
        "attune_bootstrapped",
        app_name=settings.app_name,
        graph=controller.graph.name,
        debug=settings.debug,
    )
    return controller, WorkflowTools(controller)
