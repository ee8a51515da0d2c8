from dataclasses import dataclass, field

from app.config import Settings
from app.services.monitor import DeadlineMonitor
from app.services.webhook import WebhookDispatcher


@dataclass
class ServiceContext:
    """Process-wide collaborators, built once at startup and injected."""

    settings: Settings
    session_factory: object
    dispatcher: WebhookDispatcher
    monitor: DeadlineMonitor = field(init=False)

    def __post_init__(self) -> None:
        self.monitor = DeadlineMonitor(
            self.session_factory,
            self.dispatcher,
            interval_seconds=self.settings.deadline_check_interval_seconds,
            initial_delay_seconds=self.settings.deadline_initial_delay_seconds,
        )


def build_context(
    settings: Settings, session_factory, transport=None
) -> ServiceContext:
    return ServiceContext(
        settings=settings,
        session_factory=session_factory,
        dispatcher=WebhookDispatcher.from_settings(settings, transport=transport),
    )
