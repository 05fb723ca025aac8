"""Builds the service graph from configuration."""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from core.config import AppConfig
from core.secrets import SecretsResolver
from services.authorization import (
    Authorizer,
    IdentityResolver,
    PromptIdentityResolver,
    RegistryIdentityResolver,
    Session,
    UserRegistry,
)
from services.commands import CommandRegistry, build_default_registry
from services.notifications import NotificationComposer, SlackNotifier
from services.projects import ProjectDirectory
from services.sheets import TabularStore, create_client_from_config
from services.slack import SlackWebhookClient
from services.transitions import TransitionExecutor

logger = logging.getLogger(__name__)


@dataclass
class PurchasingServices:
    config: AppConfig
    store: TabularStore
    secrets: SecretsResolver
    registry: UserRegistry
    authorizer: Authorizer
    projects: ProjectDirectory
    notifier: SlackNotifier
    executor: TransitionExecutor
    commands: CommandRegistry

    def session_for(self, email: Optional[str], prompt: Optional[Callable[[str], str]] = None) -> Session:
        """Session for `email`; with `prompt`, unknown users are asked to register."""
        resolver: IdentityResolver
        if prompt is not None:
            resolver = PromptIdentityResolver(self.registry, prompt)
        else:
            resolver = RegistryIdentityResolver(self.registry)
        return Session(email, resolver, self.authorizer)


def build_services(
    config: AppConfig,
    store: Optional[TabularStore] = None,
    secrets: Optional[SecretsResolver] = None,
    slack_client: Optional[SlackWebhookClient] = None,
) -> PurchasingServices:
    """Wire every service. `store` defaults to a `SheetsClient` built from config."""
    if store is None:
        config.validate(require_sheets=True)
        store = create_client_from_config(config)
    secrets = secrets or SecretsResolver()
    purchasing = config.purchasing

    registry = UserRegistry(store, purchasing.users_sheet)
    authorizer = Authorizer(store, purchasing.named_ranges, secrets.admin_email())
    projects = ProjectDirectory(store, purchasing, config.slack)
    composer = NotificationComposer(store, registry, purchasing.named_ranges, config.slack)
    notifier = SlackNotifier(composer, slack_client or SlackWebhookClient(config.slack.timeout), secrets)
    executor = TransitionExecutor(store, config, projects, notifier)
    commands = build_default_registry(executor, store)
    logger.debug(f"Registered {len(commands.all())} commands")

    return PurchasingServices(
        config=config,
        store=store,
        secrets=secrets,
        registry=registry,
        authorizer=authorizer,
        projects=projects,
        notifier=notifier,
        executor=executor,
        commands=commands,
    )
