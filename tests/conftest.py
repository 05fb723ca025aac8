"""
Pytest configuration and shared fixtures.

`FakeStore` is an in-memory `TabularStore`: sheets are lists of rows (row 1 is
index 0) and named ranges are lists of single-cell rows. It records every
column write so tests can assert on store round-trips.
"""

import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from unittest.mock import MagicMock

# Set environment variables BEFORE any imports that might use them
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("SLACK_SIGNING_SECRET", None)

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from core.config import AppConfig
from core.secrets import SecretsResolver
from models.purchasing import ItemColumns
from services.sheets import SheetsError, TabularStore, flatten_named_range

FIXED_NOW = datetime(2026, 1, 15, 10, 30, 0)
FIXED_TIMESTAMP = "01/15/2026 10:30:00"

OFFICER = "officer@example.com"
QUIET_OFFICER = "quiet@example.com"
MEMBER = "member@example.com"
MEMBER_2 = "member2@example.com"
ADMIN = "admin@example.com"
PROJECT_SHEET = "Rocket"
PROJECT_NAME = "Rocket Project"


class FakeStore(TabularStore):
    """In-memory spreadsheet."""

    def __init__(self):
        self.sheets: Dict[str, List[List[Any]]] = {}
        self.named_ranges: Dict[str, List[List[Any]]] = {}
        self.tab_colors: Dict[str, str] = {}
        self.protections: List[Dict[str, Any]] = [{"sheet": "Old"}]
        self.column_reads: List[tuple] = []
        self.column_writes: List[tuple] = []
        self.fail_on_write_column: Optional[int] = None

    def _sheet(self, sheet: str) -> List[List[Any]]:
        if sheet not in self.sheets:
            raise SheetsError(f"Sheet not found: {sheet}")
        return self.sheets[sheet]

    def _cell(self, sheet: str, row: int, column: int) -> Any:
        rows = self._sheet(sheet)
        if row - 1 < len(rows) and column - 1 < len(rows[row - 1]):
            return rows[row - 1][column - 1]
        return ""

    def get_last_row(self, sheet: str) -> int:
        rows = self._sheet(sheet)
        last = 0
        for number, row in enumerate(rows, start=1):
            if any(str(c).strip() for c in row if c is not None):
                last = number
        return last

    def get_rows(self, sheet: str, start_row: int, num_rows: int, num_cols: int) -> List[List[Any]]:
        return [
            [self._cell(sheet, r, c) for c in range(1, num_cols + 1)]
            for r in range(start_row, start_row + num_rows)
        ]

    def get_column(self, sheet: str, column: int, start_row: int, num_rows: int) -> List[Any]:
        self.column_reads.append((sheet, column))
        return [self._cell(sheet, r, column) for r in range(start_row, start_row + num_rows)]

    def set_column(self, sheet: str, column: int, start_row: int, values: Sequence[Any]) -> None:
        if self.fail_on_write_column == column:
            raise SheetsError(f"Write to column {column} failed")
        rows = self._sheet(sheet)
        for offset, value in enumerate(values):
            index = start_row - 1 + offset
            while len(rows) <= index:
                rows.append([])
            row = rows[index]
            while len(row) < column:
                row.append("")
            row[column - 1] = value
        self.column_writes.append((sheet, column, start_row, list(values)))

    def get_named_range_rows(self, name: str) -> List[List[Any]]:
        if name not in self.named_ranges:
            raise SheetsError(f"Named range not found: {name}")
        return [list(r) for r in self.named_ranges[name]]

    def get_named_range_values(self, name: str) -> List[str]:
        return flatten_named_range(self.get_named_range_rows(name))

    def get_sheet_values(self, sheet: str) -> List[List[Any]]:
        return [list(r) for r in self._sheet(sheet)]

    def append_row(self, sheet: str, row: Sequence[Any]) -> None:
        self._sheet(sheet).append(list(row))

    def get_sheet_url(self, sheet: str) -> str:
        self._sheet(sheet)
        return f"https://sheets.example.com/d/test#gid={sheet}"

    def get_tab_color(self, sheet: str) -> Optional[str]:
        return self.tab_colors.get(sheet)

    def clear_sheet_protections(self) -> int:
        removed = len(self.protections)
        self.protections = []
        return removed

    def protect_sheet(self, sheet: str, editors: Sequence[str]) -> None:
        self._sheet(sheet)
        self.protections.append({"sheet": sheet, "editors": list(editors)})

    # Test helpers

    def cell(self, sheet: str, row: int, column) -> Any:
        return self._cell(sheet, row, column.index)

    def written_columns(self) -> List[int]:
        return [w[1] for w in self.column_writes]


def make_row(**values) -> List[Any]:
    """A full-width item row; keyword names are ItemColumns attributes."""
    row = [""] * ItemColumns.width()
    for name, value in values.items():
        row[getattr(ItemColumns, name.upper()).offset] = value
    return row


def new_item(name: str = "Motor", **overrides) -> List[Any]:
    """Row for a requested item with every required value filled in."""
    values = dict(
        status="New",
        name=name,
        supplier="Acme",
        product_num="M-1",
        unit_price="12.50",
        quantity="2",
        total_price="25.00",
        category="Propulsion",
        account="",
        request_email=MEMBER,
        request_date="01/01/2026 09:00:00",
    )
    values.update(overrides)
    return make_row(**values)


@pytest.fixture
def config():
    return AppConfig()


@pytest.fixture
def store():
    store = FakeStore()
    store.sheets["Users"] = [
        ["Email", "Slack ID", "Full Name", "Phone"],
        [OFFICER, "U_OFF", "Olivia Officer", ""],
        [QUIET_OFFICER, "U_QUIET", "Quinn Quiet", ""],
        [MEMBER, "U_MEM", "Max Member", "555-0100"],
        [MEMBER_2, "U_MEM2", "Mia Member", ""],
        [ADMIN, "U_ADMIN", "Ada Admin", ""],
    ]
    store.sheets[PROJECT_SHEET] = [
        ["Rocket Purchasing"],
        [c.name for c in ItemColumns.all()],
    ]
    store.sheets[f"{PROJECT_SHEET} Dashboard"] = [
        [], [], [], ["", "", 1000, 250.5],
    ]
    store.named_ranges = {
        "ApprovedOfficers": [[OFFICER], [QUIET_OFFICER]],
        "NotifyApprovedOfficers": [["YES"], ["NO"]],
        "ProjectSheets": [[PROJECT_SHEET], [""]],
        "ProjectNamesToSheets": [[PROJECT_NAME, PROJECT_SHEET]],
        "Accounts": [["SG Account"], ["Grant Account"]],
    }
    store.tab_colors[PROJECT_SHEET] = "#336699"
    return store


@pytest.fixture
def add_rows(store):
    """Append item rows to the project sheet; returns their row numbers."""
    def add(*rows):
        sheet = store.sheets[PROJECT_SHEET]
        first = len(sheet) + 1
        sheet.extend(list(r) for r in rows)
        return list(range(first, first + len(rows)))
    return add


@pytest.fixture
def secrets():
    values = {
        "SLACK_WEBHOOK_PURCHASING": "https://hooks.slack.test/purchasing",
        "SLACK_WEBHOOK_DEV": "https://hooks.slack.test/dev",
        "PURCHASING_ADMIN_EMAIL": ADMIN,
    }
    return SecretsResolver(lookup=lambda name, settings_path=None: values.get(name, ""))


@pytest.fixture
def slack_client():
    from services.slack import SlackWebhookClient

    return MagicMock(spec=SlackWebhookClient)


@pytest.fixture
def services(config, store, secrets, slack_client):
    from services.wiring import build_services

    services = build_services(config, store=store, secrets=secrets, slack_client=slack_client)
    services.executor.clock = lambda: FIXED_NOW
    return services


@pytest.fixture
def officer_session(services):
    return services.session_for(OFFICER)


@pytest.fixture
def member_session(services):
    return services.session_for(MEMBER)


@pytest.fixture
def app(services):
    """FastAPI test application wired to the in-memory store."""
    from api.main import app
    from api.routes.slack import get_services

    app.dependency_overrides[get_services] = lambda: services
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Create test client."""
    from fastapi.testclient import TestClient

    return TestClient(app)
