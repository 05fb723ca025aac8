"""
Status Graph - Source of Truth for Purchasing Item Statuses

This module defines every status an item row can be moved into, and for each one:
- which current statuses it may be reached from (allowed previous)
- which columns must / should be filled before the move
- which attribution and date columns are written by the move
- which columns are back-filled when an officer fast-forwards past it
- how the move is announced in Slack

The graph is static configuration. Slack channels are named logically here;
their webhook URLs are resolved from secrets only when a message is sent.

Status Graph (current -> new):
    UNSET, Awaiting Info                     -> New
    New                                      -> Submitted
    Submitted, New                           -> Ordered
    Submitted, Ordered                       -> Awaiting Pickup
    Awaiting Pickup, Submitted, Ordered      -> Received
    New, Submitted, Ordered, Awaiting Info   -> Denied
    New, Submitted, Denied, Ordered, Received -> Awaiting Info
    UNSET .. Awaiting Info                   -> Received - Awaiting Reimbursement
    Received - Awaiting Reimbursement, Received -> Reimbursed
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from models.purchasing import Column, ItemColumns as C, TargetUsers


class StatusName(str, Enum):
    """Every status text that can appear in the Status column."""
    UNSET = ""
    NEW = "New"
    SUBMITTED = "Submitted"
    ORDERED = "Ordered"
    AWAITING_PICKUP = "Awaiting Pickup"
    RECEIVED = "Received"
    DENIED = "Denied"
    AWAITING_INFO = "Awaiting Info"
    RECEIVED_REIMBURSE = "Received - Awaiting Reimbursement"
    REIMBURSED = "Reimbursed"
    TEST = "Test"

    @classmethod
    def from_cell(cls, value: Any) -> Optional["StatusName"]:
        """Parse a Status cell. Blank cells are UNSET; unknown text is None."""
        text = "" if value is None else str(value).strip()
        try:
            return cls(text)
        except ValueError:
            return None


class SlackChannel(str, Enum):
    """Logical Slack channels; webhook URLs come from secrets."""
    PURCHASING = "purchasing"
    DEV = "dev"


CHECK_MARK_EMOJI = ":heavy_check_mark:"


@dataclass(frozen=True)
class SlackSpec:
    """Shape of the Slack notification sent after a transition."""
    emoji: str = ""
    target_users: Optional[TargetUsers] = None
    message_templates: Tuple[str, ...] = ()
    channels: Tuple[SlackChannel, ...] = ()


@dataclass(frozen=True)
class ActionText:
    """Command labels for a status."""
    selected: Optional[str] = None
    all: Optional[str] = None
    fast_forward: Optional[str] = None


@dataclass(frozen=True)
class Status:
    """A possible item status and the rules for moving an item into it."""
    key: str
    name: StatusName
    allowed_previous: FrozenSet[StatusName]
    slack: SlackSpec = field(default_factory=SlackSpec)
    user_column: Optional[Column] = None
    date_column: Optional[Column] = None
    fast_forward_user_columns: Tuple[Column, ...] = ()
    fast_forward_date_columns: Tuple[Column, ...] = ()
    required_columns: Tuple[Column, ...] = ()
    recommended_columns: Tuple[Column, ...] = ()
    fill_in_defaults: bool = False
    officers_only: bool = False
    action_text: ActionText = field(default_factory=ActionText)
    confirmation: Optional[str] = None

    @property
    def text(self) -> str:
        return self.name.value

    def allows(self, current_cell: Any) -> bool:
        """True if a row whose Status cell holds `current_cell` may move here."""
        current = StatusName.from_cell(current_cell)
        return current is not None and current in self.allowed_previous

    def to_dict(self) -> Dict[str, Any]:
        def col(c: Optional[Column]) -> Optional[Dict[str, Any]]:
            return None if c is None else {"index": c.index, "name": c.name}

        return {
            "key": self.key,
            "text": self.text,
            "allowed_previous": sorted(s.value for s in self.allowed_previous),
            "officers_only": self.officers_only,
            "required_columns": [col(c) for c in self.required_columns],
            "recommended_columns": [col(c) for c in self.recommended_columns],
            "columns": {"user": col(self.user_column), "date": col(self.date_column)},
            "fast_forward_columns": {
                "user": [col(c) for c in self.fast_forward_user_columns],
                "date": [col(c) for c in self.fast_forward_date_columns],
            },
            "fill_in_defaults": self.fill_in_defaults,
            "slack": {
                "emoji": self.slack.emoji,
                "target_users": self.slack.target_users.value if self.slack.target_users else None,
                "message_templates": list(self.slack.message_templates),
                "channels": [c.value for c in self.slack.channels],
            },
        }


S = StatusName

_STATUS_LIST = (
    Status(
        key="NEW",
        name=S.NEW,
        allowed_previous=frozenset({S.UNSET, S.AWAITING_INFO}),
        action_text=ActionText(
            fast_forward="New",
            selected="Submit selected new items",
            all="Submit all new items",
        ),
        slack=SlackSpec(
            emoji=":new:",
            target_users=TargetUsers.OFFICERS,
            message_templates=(
                "{emoji} {userTags} {userFullName} has submitted {numMarked} new item{plural} "
                "to be purchased for {projectName}.",
            ),
            channels=(SlackChannel.PURCHASING,),
        ),
        user_column=C.REQUEST_EMAIL,
        date_column=C.REQUEST_DATE,
        required_columns=(C.NAME, C.SUPPLIER, C.UNIT_PRICE, C.QUANTITY, C.CATEGORY),
    ),
    Status(
        key="SUBMITTED",
        name=S.SUBMITTED,
        allowed_previous=frozenset({S.NEW}),
        action_text=ActionText(fast_forward="Submitted", selected="Mark selected items as submitted"),
        slack=SlackSpec(
            emoji=":usf:",
            target_users=TargetUsers.REQUESTORS,
            message_templates=(
                "{emoji} {userTags} {userFullName} marked {numMarked} item{plural} for "
                "{projectName} as *submitted* to Student Government.",
            ),
            channels=(SlackChannel.PURCHASING,),
        ),
        user_column=C.OFFICER_EMAIL,
        date_column=C.SUBMIT_DATE,
        fast_forward_user_columns=(C.REQUEST_EMAIL,),
        fast_forward_date_columns=(C.REQUEST_DATE,),
        recommended_columns=(C.ACCOUNT, C.CATEGORY),
        fill_in_defaults=True,
        officers_only=True,
    ),
    Status(
        key="APPROVED",
        name=S.ORDERED,
        allowed_previous=frozenset({S.SUBMITTED, S.NEW}),
        action_text=ActionText(fast_forward="Ordered", selected="Mark selected items as ordered"),
        slack=SlackSpec(
            emoji=":white_check_mark:",
            target_users=TargetUsers.REQUESTORS,
            message_templates=(
                "{emoji} {userTags} {userFullName} marked {numMarked} item{plural} for "
                "{projectName} as *ordered*.",
            ),
            channels=(SlackChannel.PURCHASING,),
        ),
        date_column=C.UPDATE_DATE,
        fast_forward_user_columns=(C.REQUEST_EMAIL, C.OFFICER_EMAIL),
        fast_forward_date_columns=(C.REQUEST_DATE, C.SUBMIT_DATE),
        fill_in_defaults=True,
        officers_only=True,
    ),
    Status(
        key="AWAITING_PICKUP",
        name=S.AWAITING_PICKUP,
        allowed_previous=frozenset({S.SUBMITTED, S.ORDERED}),
        action_text=ActionText(
            fast_forward="Awaiting Pickup",
            selected="Mark selected items as awaiting pickup",
        ),
        slack=SlackSpec(
            emoji=":package:",
            target_users=TargetUsers.CHANNEL,
            message_templates=(
                "{emoji} {userFullName} marked {numMarked} item{plural} for {projectName} as "
                "awaiting pickup (usually in MSC 4300). _React with " + CHECK_MARK_EMOJI
                + " if you're going to pick them up._",
            ),
            channels=(SlackChannel.PURCHASING,),
        ),
        date_column=C.ARRIVE_DATE,
        fast_forward_user_columns=(C.REQUEST_EMAIL, C.OFFICER_EMAIL),
        fast_forward_date_columns=(C.REQUEST_DATE, C.SUBMIT_DATE, C.UPDATE_DATE),
        fill_in_defaults=True,
        officers_only=True,
    ),
    Status(
        key="RECEIVED",
        name=S.RECEIVED,
        allowed_previous=frozenset({S.AWAITING_PICKUP, S.SUBMITTED, S.ORDERED}),
        action_text=ActionText(
            fast_forward="Received",
            selected="Mark selected items as received (picked up)",
        ),
        slack=SlackSpec(
            emoji=":heavy_check_mark:",
            target_users=TargetUsers.REQUESTORS,
            message_templates=(
                "{emoji} {userTags} {userFullName} marked {numMarked} item{plural} for "
                "{projectName} as received (picked up).",
            ),
            channels=(SlackChannel.PURCHASING,),
        ),
        user_column=C.RECEIVE_EMAIL,
        date_column=C.RECEIVE_DATE,
        fast_forward_user_columns=(C.REQUEST_EMAIL, C.OFFICER_EMAIL),
        fast_forward_date_columns=(C.REQUEST_DATE, C.SUBMIT_DATE, C.UPDATE_DATE, C.ARRIVE_DATE),
    ),
    Status(
        key="DENIED",
        name=S.DENIED,
        allowed_previous=frozenset({S.NEW, S.SUBMITTED, S.ORDERED, S.AWAITING_INFO}),
        action_text=ActionText(fast_forward="Denied", selected="Deny selected items"),
        slack=SlackSpec(
            emoji=":x:",
            target_users=TargetUsers.REQUESTORS,
            message_templates=(
                "{emoji} {userTags} {userFullName} *denied* {numMarked} item{plural} for "
                "{projectName} (_see comments in database_).",
            ),
            channels=(SlackChannel.PURCHASING,),
        ),
        user_column=C.OFFICER_EMAIL,
        date_column=C.UPDATE_DATE,
        fast_forward_user_columns=(C.REQUEST_EMAIL,),
        fast_forward_date_columns=(C.REQUEST_DATE,),
        required_columns=(C.OFFICER_COMMENTS,),
        officers_only=True,
    ),
    Status(
        key="AWAITING_INFO",
        name=S.AWAITING_INFO,
        allowed_previous=frozenset({S.NEW, S.SUBMITTED, S.DENIED, S.ORDERED, S.RECEIVED}),
        action_text=ActionText(
            fast_forward="Awaiting Info",
            selected="Request more information for selected items",
        ),
        slack=SlackSpec(
            emoji=":exclamation:",
            target_users=TargetUsers.REQUESTORS,
            message_templates=(
                "{emoji} {userTags} {userFullName} requested more info for {numMarked} "
                "item{plural} for {projectName} (_see comments in database_). Update the "
                "information, then resubmit as new items.",
            ),
            channels=(SlackChannel.PURCHASING,),
        ),
        user_column=C.OFFICER_EMAIL,
        date_column=C.UPDATE_DATE,
        fast_forward_user_columns=(C.REQUEST_EMAIL,),
        fast_forward_date_columns=(C.REQUEST_DATE,),
        required_columns=(C.OFFICER_COMMENTS,),
        officers_only=True,
    ),
    Status(
        key="RECEIVED_REIMBURSE",
        name=S.RECEIVED_REIMBURSE,
        allowed_previous=frozenset({
            S.UNSET, S.NEW, S.SUBMITTED, S.ORDERED, S.RECEIVED, S.AWAITING_PICKUP, S.AWAITING_INFO,
        }),
        action_text=ActionText(
            fast_forward="Received - Awaiting Reimbursement",
            selected="Mark selected items received and request reimbursement",
        ),
        slack=SlackSpec(
            emoji=":heavy_dollar_sign:",
            target_users=TargetUsers.OFFICERS,
            message_templates=(
                "{emoji} {userTags} {userFullName} marked {numMarked} item{plural} as received "
                "for {projectName} and requested reimbursement for them.",
            ),
            channels=(SlackChannel.PURCHASING,),
        ),
        date_column=C.RECEIVE_DATE,
        fast_forward_user_columns=(C.REQUEST_EMAIL, C.OFFICER_EMAIL),
        fast_forward_date_columns=(C.REQUEST_DATE, C.SUBMIT_DATE, C.UPDATE_DATE, C.ARRIVE_DATE),
        required_columns=(C.REQUEST_COMMENTS,),
        confirmation=(
            "NOTE: Reimbursements are not guaranteed and MUST be preapproved. Items must be "
            "received before reimbursement will be sent. If at all possible, items should be "
            "purchased by a financial officer. You are required to put your PayPal email "
            'address in the "Request Comments" field, and only the original item requestor '
            "can be reimbursed. Are you sure you want to continue?"
        ),
    ),
    Status(
        key="REIMBURSED",
        name=S.REIMBURSED,
        allowed_previous=frozenset({S.RECEIVED_REIMBURSE, S.RECEIVED}),
        action_text=ActionText(fast_forward="Reimbursed", selected="Mark selected items as reimbursed"),
        slack=SlackSpec(
            emoji=":money_with_wings:",
            target_users=TargetUsers.REQUESTORS,
            message_templates=(
                "{emoji} {userTags} {userFullName} sent reimbursement for {numMarked} "
                "item{plural} for {projectName}.",
            ),
            channels=(SlackChannel.PURCHASING,),
        ),
        date_column=C.UPDATE_DATE,
        fast_forward_user_columns=(C.REQUEST_EMAIL, C.OFFICER_EMAIL),
        fast_forward_date_columns=(C.REQUEST_DATE, C.SUBMIT_DATE, C.UPDATE_DATE, C.ARRIVE_DATE),
        officers_only=True,
    ),
)

# Diagnostic status outside the normal workflow; announces to the dev channel.
TEST_STATUS = Status(
    key="TEST",
    name=S.TEST,
    allowed_previous=frozenset({S.UNSET, S.TEST}),
    action_text=ActionText(fast_forward="Test", selected="Test update item"),
    slack=SlackSpec(
        emoji=":checkered_flag:",
        target_users=TargetUsers.CHANNEL,
        message_templates=(
            "{emoji} {userTags} {userFullName} marked {numMarked} item{plural} for "
            "{projectName} as *test*.",
        ),
        channels=(SlackChannel.DEV,),
    ),
    date_column=C.UPDATE_DATE,
    fast_forward_user_columns=(C.REQUEST_EMAIL, C.OFFICER_EMAIL),
    fast_forward_date_columns=(C.REQUEST_DATE, C.SUBMIT_DATE),
    fill_in_defaults=True,
    officers_only=True,
)

STATUSES: Mapping[str, Status] = MappingProxyType({s.key: s for s in _STATUS_LIST})


def get_status(key: str) -> Status:
    """Look up a status by its key (e.g. "SUBMITTED"), including TEST."""
    key = key.upper()
    if key == TEST_STATUS.key:
        return TEST_STATUS
    try:
        return STATUSES[key]
    except KeyError:
        raise KeyError(f"Unknown status: {key}") from None


def is_new_status_allowed(current_status_text: Any, new_status: Status) -> bool:
    """Check if a row whose status is `current_status_text` may change to `new_status`."""
    return new_status.allows(current_status_text)


def status_graph_to_dict(include_test: bool = False) -> Dict[str, Any]:
    """Serialize the status graph (no secrets) for display or export."""
    statuses = list(STATUSES.values())
    if include_test:
        statuses.append(TEST_STATUS)
    return {
        "statuses": [s.to_dict() for s in statuses],
        "edges": [
            {"from": prev.value, "to": s.text}
            for s in statuses
            for prev in sorted(s.allowed_previous, key=lambda p: p.value)
        ],
    }
