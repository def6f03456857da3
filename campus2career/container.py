"""Service wiring shared by the API server and the CLI."""

from dataclasses import dataclass, field
from typing import Optional

from campus2career.config.environment import EnvironmentConfig
from campus2career.config.exceptions import ConfigurationError
from campus2career.config.models import AppConfig
from campus2career.logging import get_logger
from campus2career.marketplace import MarketplaceClient, MarketplaceConfigurationError
from campus2career.notifications import MailTransport, NotificationDispatcher
from campus2career.reconciler import ApplicationReconciler, ReconcilerSettings, RepairJob
from campus2career.scheduler import SchedulerService
from campus2career.tasks import TaskRunner, ThreadTaskRunner

logger = get_logger(__name__, component="cli")


@dataclass
class ServiceContainer:
    """Long-lived service singletons for one process."""

    app_config: AppConfig
    env_config: EnvironmentConfig
    mail_transport: MailTransport
    dispatcher: NotificationDispatcher
    marketplace: MarketplaceClient
    task_runner: TaskRunner
    reconciler: ApplicationReconciler
    repair_job: RepairJob
    scheduler: Optional[SchedulerService] = field(default=None)

    def start_background(self) -> None:
        """Start the periodic repair scheduler when enabled."""
        if not self.app_config.reconciliation.enabled:
            logger.info("Reconciliation disabled; scheduler not started", extra={"event": "scheduler.disabled"})
            return
        self.scheduler = SchedulerService(
            self.repair_job, interval_minutes=self.app_config.reconciliation.interval_minutes
        )
        self.scheduler.start()

    def close(self) -> None:
        """Stop the scheduler, let queued fan-out finish, and release HTTP connections."""
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
        self.task_runner.shutdown(wait=True)
        self.marketplace.close()


def build_services(
    app_config: AppConfig,
    env_config: EnvironmentConfig,
    task_runner: Optional[TaskRunner] = None,
    marketplace: Optional[MarketplaceClient] = None,
    mail_transport: Optional[MailTransport] = None,
) -> ServiceContainer:
    """
    Build the service graph. The database must already be initialized.

    Raises:
        ConfigurationError: If the marketplace client cannot be configured
    """
    if marketplace is None:
        try:
            marketplace = MarketplaceClient(
                base_url=env_config.marketplace_api_url or "",
                api_token=env_config.marketplace_api_token,
                timeout=app_config.marketplace.timeout_seconds,
                user_agent=app_config.marketplace.user_agent,
            )
        except MarketplaceConfigurationError as e:
            raise ConfigurationError(
                str(e),
                suggestions=["Set MARKETPLACE_API_URL in your environment or .env file"],
            ) from e

    mail_transport = mail_transport or MailTransport(env_config, app_config.email)
    base_url = env_config.marketplace_root_url
    dispatcher = NotificationDispatcher(
        mail_transport=mail_transport,
        base_url=base_url,
        inquiry_transition=app_config.marketplace.inquiry_transition,
        accept_transition=app_config.marketplace.accept_transition,
        decline_transition=app_config.marketplace.decline_transition,
    )
    task_runner = task_runner or ThreadTaskRunner(max_workers=app_config.tasks.max_workers)
    settings = ReconcilerSettings.from_config(app_config.marketplace, base_url)

    container = ServiceContainer(
        app_config=app_config,
        env_config=env_config,
        mail_transport=mail_transport,
        dispatcher=dispatcher,
        marketplace=marketplace,
        task_runner=task_runner,
        reconciler=ApplicationReconciler(
            marketplace, dispatcher, task_runner=task_runner, settings=settings
        ),
        repair_job=RepairJob(
            marketplace, settings=settings, batch_size=app_config.reconciliation.batch_size
        ),
    )
    logger.info(
        "Services initialized",
        extra={"event": "services.initialized", "email_mode": mail_transport.mode},
    )
    return container
