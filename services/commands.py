"""
Command registry: stable command ids mapped to purchasing actions.

Commands are built once at startup by `build_default_registry`. Callers (CLI,
HTTP) run a command by id; the registry asks for confirmation where the
action requires it and turns the engine's exceptions into user feedback.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from models.purchasing import RowRange, User
from schemas.statuses import STATUSES, TEST_STATUS, Status
from services.authorization import AuthorizationError, IdentityError, Session
from services.projects import NotAProjectSheetError
from services.protections import refresh_protections
from services.sheets import SheetsError, TabularStore
from services.transitions import (
    NoEligibleRowsError,
    NotificationDeliveryError,
    PartialWriteError,
    TransitionExecutor,
    TransitionValidationError,
)

logger = logging.getLogger(__name__)


class Feedback:
    """Collects user-facing messages and mirrors them to the log."""

    def __init__(self):
        self.messages: List[Tuple[str, str]] = []

    def _add(self, level: str, message: str) -> None:
        self.messages.append((level, message))

    def success(self, message: str) -> None:
        logger.info(message)
        self._add("success", message)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self._add("warning", message)

    def error(self, message: str) -> None:
        logger.error(message)
        self._add("error", message)

    @property
    def has_errors(self) -> bool:
        return any(level == "error" for level, _ in self.messages)


@dataclass
class CommandContext:
    """Everything a command needs about the current invocation."""
    sheet: str
    session: Session
    selection: List[RowRange] = field(default_factory=list)
    confirm: Callable[[str], bool] = lambda prompt: False


@dataclass
class CommandOutcome:
    message: str
    warnings: List[str] = field(default_factory=list)
    result: Any = None


@dataclass(frozen=True)
class Command:
    id: str
    label: str
    handler: Callable[[CommandContext], CommandOutcome]
    officers_only: bool = False
    admin_only: bool = False
    confirmation: Optional[str] = None


class CommandRegistry:
    def __init__(self):
        self._commands: Dict[str, Command] = {}

    def register(self, command: Command) -> None:
        if command.id in self._commands:
            raise ValueError(f"Command already registered: {command.id}")
        self._commands[command.id] = command

    def get(self, command_id: str) -> Command:
        try:
            return self._commands[command_id]
        except KeyError:
            raise KeyError(f"Unknown command: {command_id}") from None

    def all(self) -> List[Command]:
        return list(self._commands.values())

    def available_for(self, user: User, is_admin: bool = False) -> List[Command]:
        """Commands the user may see; gated commands are hidden, not disabled."""
        return [
            c for c in self._commands.values()
            if (not c.officers_only or user.is_financial_officer) and (not c.admin_only or is_admin)
        ]

    def run(self, command_id: str, context: CommandContext, feedback: Feedback) -> Optional[CommandOutcome]:
        """Run a command, reporting the outcome through `feedback`.

        Returns the outcome, or None if the command was cancelled or failed.
        """
        command = self.get(command_id)

        if command.confirmation and not context.confirm(command.confirmation):
            feedback.warn("Action cancelled.")
            return None

        try:
            outcome = command.handler(context)
        except TransitionValidationError as e:
            for warning in e.warnings:
                feedback.warn(warning)
            feedback.error(str(e))
            return None
        except NotificationDeliveryError as e:
            for warning in e.result.warnings:
                feedback.warn(warning)
            feedback.success(e.result.message)
            feedback.error(f"Slack notification failed: {e.cause}")
            return None
        except (
            AuthorizationError,
            IdentityError,
            NotAProjectSheetError,
            NoEligibleRowsError,
            PartialWriteError,
            SheetsError,
        ) as e:
            feedback.error(str(e))
            return None

        for warning in outcome.warnings:
            feedback.warn(warning)
        feedback.success(outcome.message)
        return outcome


def _mark(executor: TransitionExecutor, status: Status, mark_all: bool = False):
    def handler(context: CommandContext) -> CommandOutcome:
        result = executor.mark_items(
            status, context.sheet, context.session, selection=context.selection, mark_all=mark_all
        )
        return CommandOutcome(result.message, result.warnings, result)
    return handler


def _fast_forward(executor: TransitionExecutor, status: Status):
    def handler(context: CommandContext) -> CommandOutcome:
        result = executor.fast_forward_items(status, context.sheet, context.session, context.selection)
        return CommandOutcome(result.message, result=result)
    return handler


def build_default_registry(executor: TransitionExecutor, store: TabularStore) -> CommandRegistry:
    """Register every purchasing command."""
    registry = CommandRegistry()
    new = STATUSES["NEW"]

    registry.register(Command(
        id="mark_all_new",
        label=new.action_text.all,
        handler=_mark(executor, new, mark_all=True),
    ))

    for status in STATUSES.values():
        if status.action_text.selected:
            registry.register(Command(
                id=f"mark_selected_{status.key.lower()}",
                label=status.action_text.selected,
                handler=_mark(executor, status),
                officers_only=status.officers_only,
                confirmation=status.confirmation,
            ))

    for status in STATUSES.values():
        if status.action_text.fast_forward:
            registry.register(Command(
                id=f"fast_forward_selected_{status.key.lower()}",
                label=f"Fast-forward to {status.action_text.fast_forward}",
                handler=_fast_forward(executor, status),
                officers_only=True,
            ))

    registry.register(Command(
        id="test_update_selected",
        label=TEST_STATUS.action_text.selected,
        handler=_mark(executor, TEST_STATUS),
        officers_only=True,
    ))

    def protect(context: CommandContext) -> CommandOutcome:
        sheets = refresh_protections(store, executor.config.purchasing, context.session)
        return CommandOutcome(f"Updated protections for {len(sheets)} sheet(s).", result=sheets)

    registry.register(Command(
        id="refresh_protections",
        label="Refresh protections",
        handler=protect,
        admin_only=True,
    ))
    return registry
