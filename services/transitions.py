"""
Batch status transitions on a project sheet.

A transition runs in two phases:

1. Validation: every selected row whose current status may move to the target
   is checked against the target's required/recommended columns. Any missing
   required value aborts the whole batch before anything is written.
2. Write: each affected column is read once, updated in memory for every
   transitioning row, then written back once.

Notifications are sent only after the write phase has committed. A failed
notification never rolls the sheet back; it is reported to the caller.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import requests

from core.config import AppConfig
from core.logging_config import LogContext, generate_run_id
from models.purchasing import Column, Item, ItemColumns, RowRange, TargetUsers, is_blank
from schemas.statuses import Status, StatusName
from services.authorization import Session
from services.formatting import dedupe, make_list, wrap_in_double_quotes
from services.projects import ProjectDirectory
from services.sheets import SheetsError, TabularStore
from services.slack import SlackDeliveryError
from services.validation import validate_rows

logger = logging.getLogger(__name__)


class TransitionValidationError(Exception):
    """A required value is missing; nothing was written."""

    def __init__(self, blocking: List[str], warnings: Optional[List[str]] = None):
        self.blocking = list(blocking)
        self.warnings = list(warnings or [])
        super().__init__(" ".join(self.blocking) + " No items were marked.")


class NoEligibleRowsError(Exception):
    """None of the selected rows can move to the target status."""

    def __init__(self, status: Status):
        self.status = status
        super().__init__(f'No valid items selected to mark as "{status.text}".')


class PartialWriteError(Exception):
    """The write phase failed after some columns were already written."""

    def __init__(self, written: List[Column], failed: Column):
        self.written = list(written)
        self.failed = failed
        done = ", ".join(c.label for c in self.written) or "none"
        super().__init__(
            f'Writing column "{failed.label}" failed; columns already written: {done}. '
            "The selected rows may be partially updated."
        )


class NotificationDeliveryError(Exception):
    """The sheet was updated but the Slack notification failed."""

    def __init__(self, result: "TransitionResult", cause: Exception):
        self.result = result
        self.cause = cause
        super().__init__(f"{result.message} However, the Slack notification failed: {cause}")


@dataclass
class TransitionResult:
    """What a transition changed."""
    status: Status
    sheet: str
    rows: List[int] = field(default_factory=list)
    items: List[Item] = field(default_factory=list)
    requestors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    columns_written: List[Column] = field(default_factory=list)
    fast_forward: bool = False
    notified: bool = False

    @property
    def count(self) -> int:
        return len(self.rows)

    @property
    def message(self) -> str:
        if self.fast_forward:
            return f'{self.count} items fast-forwarded to "{self.status.text}".'
        previous = [s for s in StatusName if s in self.status.allowed_previous]
        quoted = make_list([wrap_in_double_quotes(s.value) for s in previous], "or")
        return f'{self.count} items marked from {quoted} to "{self.status.text}".'


class ColumnBatch:
    """In-memory copy of whole data columns of one sheet.

    Each column is read on first access and written back once on `commit`,
    and only if something changed.
    """

    def __init__(self, store: TabularStore, sheet: str, first_row: int, last_row: int):
        self.store = store
        self.sheet = sheet
        self.first_row = first_row
        self.num_rows = max(last_row - first_row + 1, 0)
        self._columns: Dict[int, List[Any]] = {}
        self._names: Dict[int, Column] = {}
        self._dirty: List[int] = []

    def _values(self, column: Column) -> List[Any]:
        if column.index not in self._columns:
            self._columns[column.index] = list(
                self.store.get_column(self.sheet, column.index, self.first_row, self.num_rows)
            )
            self._names[column.index] = column
        return self._columns[column.index]

    def get(self, column: Column, row: int) -> Any:
        return self._values(column)[row - self.first_row]

    def set(self, column: Column, row: int, value: Any) -> None:
        self._values(column)[row - self.first_row] = value
        if column.index not in self._dirty:
            self._dirty.append(column.index)

    def fill_if_blank(self, column: Column, row: int, value: Any) -> bool:
        if is_blank(self.get(column, row)):
            self.set(column, row, value)
            return True
        return False

    def commit(self) -> List[Column]:
        """Write every changed column. Raises `PartialWriteError` on failure."""
        written: List[Column] = []
        for index in self._dirty:
            column = self._names[index]
            try:
                self.store.set_column(self.sheet, index, self.first_row, self._columns[index])
            except SheetsError as e:
                logger.error(
                    f"Write of column {column.label!r} on {self.sheet} failed after "
                    f"{len(written)} column(s): {e}"
                )
                raise PartialWriteError(written, column) from e
            written.append(column)
        self._dirty = []
        logger.info(f"Wrote {len(written)} column(s) on {self.sheet}: {[c.label for c in written]}")
        return written


class TransitionExecutor:
    """Applies status changes to selected rows of a project sheet."""

    def __init__(
        self,
        store: TabularStore,
        config: AppConfig,
        projects: ProjectDirectory,
        notifier=None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.config = config
        self.projects = projects
        self.notifier = notifier
        self.clock = clock

    @property
    def num_header_rows(self) -> int:
        return self.config.purchasing.num_header_rows

    def _timestamp(self) -> str:
        return self.clock().strftime(self.config.purchasing.date_format)

    def _default_account(self) -> str:
        accounts = self.store.get_named_range_values(self.config.purchasing.named_ranges.accounts)
        return accounts[0] if accounts else ""

    def _all_rows(self, sheet: str, last_row: int) -> List[RowRange]:
        """One range covering every data row up to the last row with a Name."""
        first = self.num_header_rows + 1
        if last_row < first:
            return []
        names = self.store.get_column(sheet, ItemColumns.NAME.index, first, last_row - first + 1)
        last_with_data = None
        for offset, name in enumerate(names):
            if not is_blank(name):
                last_with_data = first + offset
        if last_with_data is None:
            return []
        return [RowRange(first, last_with_data - first + 1)]

    def _selected_row_numbers(self, selection: Iterable[RowRange], last_row: int) -> List[int]:
        """Row numbers of the selection, past the header, each once, in selection order."""
        numbers: List[int] = []
        seen = set()
        for row_range in selection:
            clipped = row_range.clip(self.num_header_rows, last_row)
            if clipped is None:
                continue
            for number in clipped.rows():
                if number not in seen:
                    seen.add(number)
                    numbers.append(number)
        return numbers

    def _read_rows(self, sheet: str, numbers: Sequence[int]) -> Dict[int, List[Any]]:
        """Snapshot full rows for `numbers`, one read per contiguous block."""
        snapshot: Dict[int, List[Any]] = {}
        width = ItemColumns.width()
        block: List[int] = []
        for number in sorted(numbers) + [None]:
            if block and (number is None or number != block[-1] + 1):
                rows = self.store.get_rows(sheet, block[0], len(block), width)
                snapshot.update(zip(block, rows))
                block = []
            if number is not None:
                block.append(number)
        return snapshot

    def _apply(
        self,
        batch: ColumnBatch,
        status: Status,
        row: int,
        email: str,
        timestamp: str,
        default_account: Callable[[], str],
    ) -> None:
        batch.set(ItemColumns.STATUS, row, status.text)
        if status.user_column is not None:
            batch.set(status.user_column, row, email)
        if status.date_column is not None:
            batch.set(status.date_column, row, timestamp)
        if status.fill_in_defaults:
            if is_blank(batch.get(ItemColumns.ACCOUNT, row)):
                batch.set(ItemColumns.ACCOUNT, row, default_account())
            batch.fill_if_blank(ItemColumns.CATEGORY, row, self.config.purchasing.default_category)

    def mark_items(
        self,
        status: Status,
        sheet: str,
        session: Session,
        selection: Optional[Sequence[RowRange]] = None,
        mark_all: bool = False,
    ) -> TransitionResult:
        """Move the selected (or all) eligible rows of `sheet` to `status`.

        Raises:
            NotAProjectSheetError, AuthorizationError: before anything is read
            TransitionValidationError: a required value is missing; nothing written
            NoEligibleRowsError: no selected row may move to `status`
            PartialWriteError: a column write failed mid-batch
            NotificationDeliveryError: rows were committed but Slack failed
        """
        self.projects.require_project_sheet(sheet)
        if status.officers_only:
            session.require_officer(f'mark items as "{status.text}"')
        user = session.current_user()

        with LogContext(run_id=generate_run_id(), sheet=sheet, actor=user.email, status=status.text):
            last_row = self.store.get_last_row(sheet)
            ranges = self._all_rows(sheet, last_row) if mark_all else list(selection or [])
            numbers = self._selected_row_numbers(ranges, last_row)
            logger.info(f"Marking {len(numbers)} selected row(s) as {status.text!r}")

            # Phase 1: validate every candidate before touching the sheet
            snapshot = self._read_rows(sheet, numbers)
            candidates = [n for n in numbers if status.allows(ItemColumns.STATUS.value_in(snapshot[n]))]
            validation = validate_rows((snapshot[n] for n in candidates), status)
            if not validation.ok:
                logger.warning(f"Aborting, required values missing: {validation.blocking}")
                raise TransitionValidationError(validation.blocking, validation.warnings)
            for warning in validation.warnings:
                logger.warning(warning)

            # Phase 2: re-read the columns, then write each one once
            result = TransitionResult(status=status, sheet=sheet, warnings=validation.warnings)
            if candidates:
                batch = ColumnBatch(self.store, sheet, self.num_header_rows + 1, last_row)
                timestamp = self._timestamp()
                account = _Lazy(self._default_account)
                for number in candidates:
                    if not status.allows(batch.get(ItemColumns.STATUS, number)):
                        logger.info(f"Row {number} changed status since validation, skipping")
                        continue
                    self._apply(batch, status, number, user.email, timestamp, account)

                    item = Item.from_row(snapshot[number])
                    if status.fill_in_defaults:
                        item.category = str(batch.get(ItemColumns.CATEGORY, number))
                    result.rows.append(number)
                    result.items.append(item)
                    if status.slack.target_users == TargetUsers.REQUESTORS:
                        result.requestors.append(str(ItemColumns.REQUEST_EMAIL.value_in(snapshot[number])))

                result.requestors = dedupe(result.requestors)
                if result.rows:
                    result.columns_written = batch.commit()

            if not result.rows:
                logger.warning(f"No eligible rows for {status.text!r}")
                raise NoEligibleRowsError(status)

            logger.info(result.message)
            self._notify(result, user.full_name)
            return result

    def _notify(self, result: TransitionResult, actor_name: str) -> None:
        if self.notifier is None or not result.items:
            return
        try:
            project = self.projects.context_for_sheet(result.sheet)
            self.notifier.notify(result.status, actor_name, result.requestors, result.items, project)
        except (SlackDeliveryError, SheetsError, requests.RequestException) as e:
            logger.error(f"Rows committed but notification failed: {e}")
            raise NotificationDeliveryError(result, e) from e
        result.notified = True

    def fast_forward_items(
        self,
        status: Status,
        sheet: str,
        session: Session,
        selection: Sequence[RowRange],
    ) -> TransitionResult:
        """Jump the selected rows straight to `status`, officers only.

        Predecessor and field checks are skipped. Blank attribution and date
        columns of the skipped statuses are back-filled. No notification is sent.
        """
        self.projects.require_project_sheet(sheet)
        officer = session.require_officer("fast-forward items")

        with LogContext(run_id=generate_run_id(), sheet=sheet, actor=officer.email, status=status.text):
            last_row = self.store.get_last_row(sheet)
            numbers = self._selected_row_numbers(selection, last_row)
            result = TransitionResult(status=status, sheet=sheet, fast_forward=True)

            if numbers:
                batch = ColumnBatch(self.store, sheet, self.num_header_rows + 1, last_row)
                timestamp = self._timestamp()
                account = _Lazy(self._default_account)
                for number in numbers:
                    self._apply(batch, status, number, officer.email, timestamp, account)
                    for column in status.fast_forward_user_columns:
                        batch.fill_if_blank(column, number, officer.email)
                    for column in status.fast_forward_date_columns:
                        batch.fill_if_blank(column, number, timestamp)
                    result.rows.append(number)
                result.columns_written = batch.commit()

            logger.info(result.message)
            return result


class _Lazy:
    """Call `factory` on first use and remember the value."""

    def __init__(self, factory: Callable[[], Any]):
        self.factory = factory
        self._value = None
        self._loaded = False

    def __call__(self) -> Any:
        if not self._loaded:
            self._value = self.factory()
            self._loaded = True
        return self._value
