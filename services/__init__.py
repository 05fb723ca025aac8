"""Services for the purchasing tracker."""

from services.authorization import (
    AuthorizationError,
    Authorizer,
    IdentityError,
    Session,
    UserRegistry,
)
from services.commands import CommandRegistry, Feedback, build_default_registry
from services.notifications import NotificationComposer, SlackNotifier
from services.projects import NotAProjectSheetError, ProjectDirectory
from services.sheets import SheetsClient, SheetsError, TabularStore
from services.slack import SlackDeliveryError, SlackWebhookClient
from services.transitions import (
    NoEligibleRowsError,
    NotificationDeliveryError,
    PartialWriteError,
    TransitionExecutor,
    TransitionResult,
    TransitionValidationError,
)
from services.wiring import PurchasingServices, build_services

__all__ = [
    # Store
    "SheetsClient",
    "SheetsError",
    "TabularStore",
    # Identity
    "AuthorizationError",
    "Authorizer",
    "IdentityError",
    "Session",
    "UserRegistry",
    # Projects
    "NotAProjectSheetError",
    "ProjectDirectory",
    # Transitions
    "TransitionExecutor",
    "TransitionResult",
    "TransitionValidationError",
    "NoEligibleRowsError",
    "PartialWriteError",
    "NotificationDeliveryError",
    # Slack
    "NotificationComposer",
    "SlackNotifier",
    "SlackWebhookClient",
    "SlackDeliveryError",
    # Commands
    "CommandRegistry",
    "Feedback",
    "build_default_registry",
    "build_services",
    "PurchasingServices",
]
