"""
mlservice - Driver

Thin outer driver over an API transport strategy (command line, scripted
command batches, HTTP/JSON). Front-ends create and drive service strategies
themselves; the driver only wires settings and observability and announces
the build it runs.
"""

import logging
from typing import Generic, Optional, Protocol, TypeVar

from mlservice.observability.logging import configure_logging
from mlservice.observability.metrics import set_metrics_enabled
from mlservice.server.config import ServiceSettings, get_settings

logger = logging.getLogger(__name__)


class ApiStrategy(Protocol):
    """Transport front-end driving service strategies."""


ApiT = TypeVar("ApiT", bound=ApiStrategy)


class Driver(Generic[ApiT]):
    """
    Entry object binding one API front-end to the service settings.

    The build identifier comes from the settings passed in, so several
    drivers in one process may report different builds.
    """

    def __init__(
        self,
        api: ApiT,
        settings: Optional[ServiceSettings] = None,
        configure_observability: bool = False,
    ):
        """
        Initialize the driver and announce the build.

        Args:
            api: API front-end instance
            settings: Service settings (cached environment settings if None)
            configure_observability: Configure logging and metrics from the
                settings before announcing
        """
        self.api = api
        self.settings = settings if settings is not None else get_settings()

        if configure_observability:
            self.configure_observability()

        logger.info(self.banner, extra={"build_id": self.build_id})

    @property
    def build_id(self) -> str:
        return self.settings.build_id

    @property
    def banner(self) -> str:
        return f"{self.settings.app_name} [ commit {self.build_id} ]"

    def configure_observability(self) -> None:
        """Apply logging and metrics settings process-wide."""
        configure_logging(
            level=self.settings.log_level,
            format=self.settings.log_format,
            redact_fields=self.settings.redact_log_fields,
        )
        set_metrics_enabled(self.settings.metrics_enabled)
