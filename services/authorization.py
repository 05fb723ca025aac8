"""Authorization and identity for purchasing actions.

Officer checks read the `ApprovedOfficers` named range; the admin is a single
configured address. The acting user is resolved once per `Session` through an
injected `IdentityResolver`:

- RegistryIdentityResolver: look the email up in the Users sheet
- PromptIdentityResolver: same, but ask for Slack ID and full name on a miss
  and append the new user to the registry
- AnonymousIdentityResolver: no email available; never an officer
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional

from core.config import NamedRanges
from models.purchasing import User
from services.sheets import SheetsError, TabularStore

logger = logging.getLogger(__name__)

SLACK_ID_PROMPT = (
    "Looks like this is your first time using the purchasing database. Please enter your "
    "Slack Member ID # (NOT your username!) found in your Slack profile, in the dropdown menu."
)
FULL_NAME_PROMPT = (
    "Great, thank you! Please also enter your full name. You won't have to do this next time."
)


class AuthorizationError(Exception):
    """Raised when the acting user may not perform an action."""
    pass


class IdentityError(Exception):
    """Raised when the acting user cannot be identified."""
    pass


@dataclass(frozen=True)
class RegistryEntry:
    """One row of the Users sheet."""
    email: str
    slack_id: str
    full_name: str
    phone: str = ""

    def to_row(self) -> List[str]:
        row = [self.email, self.slack_id, self.full_name]
        if self.phone:
            row.append(self.phone)
        return row

    @classmethod
    def from_row(cls, row: List[str]) -> "RegistryEntry":
        cells = [str(c) if c is not None else "" for c in row] + [""] * 4
        return cls(email=cells[0], slack_id=cells[1], full_name=cells[2], phone=cells[3])


class UserRegistry:
    """Append-only list of known users in the Users sheet (first row is a header)."""

    def __init__(self, store: TabularStore, sheet_name: str = "Users"):
        self.store = store
        self.sheet_name = sheet_name
        self._entries: Optional[List[RegistryEntry]] = None

    def _load(self) -> List[RegistryEntry]:
        if self._entries is None:
            rows = self.store.get_sheet_values(self.sheet_name)
            self._entries = [RegistryEntry.from_row(r) for r in rows[1:] if r]
        return self._entries

    def find(self, email: str) -> Optional[RegistryEntry]:
        if not email:
            return None
        for entry in self._load():
            if entry.email == email:
                return entry
        return None

    def slack_tag(self, email: str) -> str:
        """Slack mention for `email`, or "" if the user is unknown."""
        entry = self.find(email)
        if entry and entry.slack_id:
            return f"<@{entry.slack_id}>"
        return ""

    def add(self, entry: RegistryEntry) -> None:
        self.store.append_row(self.sheet_name, entry.to_row())
        self._load().append(entry)
        logger.info(f"Registered new user {entry.email}")


class IdentityResolver(ABC):
    """Strategy for turning an email address into a registry entry."""

    @abstractmethod
    def resolve(self, email: str) -> Optional[RegistryEntry]:
        ...


class RegistryIdentityResolver(IdentityResolver):
    def __init__(self, registry: UserRegistry):
        self.registry = registry

    def resolve(self, email: str) -> Optional[RegistryEntry]:
        return self.registry.find(email)


class PromptIdentityResolver(IdentityResolver):
    """Registry lookup that interactively collects unknown users.

    Prompts block until a non-empty answer is given.
    """

    def __init__(self, registry: UserRegistry, prompt: Callable[[str], str] = input):
        self.registry = registry
        self.prompt = prompt

    def _ask(self, question: str) -> str:
        answer = ""
        while not answer:
            answer = (self.prompt(question) or "").strip()
        return answer

    def resolve(self, email: str) -> Optional[RegistryEntry]:
        entry = self.registry.find(email)
        if entry is not None:
            return entry

        slack_id = self._ask(SLACK_ID_PROMPT)
        full_name = self._ask(FULL_NAME_PROMPT)
        entry = RegistryEntry(email=email, slack_id=slack_id, full_name=full_name)
        self.registry.add(entry)
        return entry


class AnonymousIdentityResolver(IdentityResolver):
    def resolve(self, email: str) -> Optional[RegistryEntry]:
        return RegistryEntry(email="", slack_id="", full_name="Anonymous")


class Authorizer:
    """Officer and admin checks."""

    def __init__(self, store: TabularStore, named_ranges: NamedRanges, admin_email: str = ""):
        self.store = store
        self.named_ranges = named_ranges
        self.admin_email = admin_email

    def officer_emails(self) -> List[str]:
        return self.store.get_named_range_values(self.named_ranges.approved_officers)

    def is_officer(self, email: Optional[str]) -> bool:
        """True iff `email` is listed as an approved officer. Never raises."""
        if not email:
            return False
        try:
            return email in self.officer_emails()
        except SheetsError as e:
            logger.warning(f"Could not read officer list, treating {email} as non-officer: {e}")
            return False

    def is_admin(self, email: Optional[str]) -> bool:
        return bool(email) and bool(self.admin_email) and email == self.admin_email


class Session:
    """Per-invocation identity of the acting user.

    The user is resolved on first use and memoized for the rest of the session.
    """

    def __init__(
        self,
        email: Optional[str],
        resolver: IdentityResolver,
        authorizer: Authorizer,
    ):
        self.email = email or ""
        self.resolver = resolver if self.email else AnonymousIdentityResolver()
        self.authorizer = authorizer
        self._user: Optional[User] = None

    def current_user(self) -> User:
        if self._user is not None:
            return self._user

        entry = self.resolver.resolve(self.email)
        if entry is None:
            raise IdentityError(f"No user data found for {self.email}")

        self._user = User(
            email=self.email,
            full_name=entry.full_name,
            slack_id=entry.slack_id,
            is_financial_officer=self.authorizer.is_officer(self.email),
            phone=entry.phone or None,
        )
        return self._user

    def is_officer(self) -> bool:
        return self.current_user().is_financial_officer

    def is_admin(self) -> bool:
        return self.authorizer.is_admin(self.email)

    def require_officer(self, action: str) -> User:
        user = self.current_user()
        if not user.is_financial_officer:
            logger.warning(f"Denied '{action}' for non-officer {user.email or '<anonymous>'}")
            raise AuthorizationError(f"Only financial officers may {action}.")
        return user

    def require_admin(self, action: str) -> User:
        user = self.current_user()
        if not self.is_admin():
            logger.warning(f"Denied '{action}' for non-admin {user.email or '<anonymous>'}")
            raise AuthorizationError(f"Only the admin may {action}.")
        return user
