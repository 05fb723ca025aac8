"""Project sheet lookup and budget status messages."""
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from core.config import PurchasingConfig, SlackConfig
from models.purchasing import ProjectContext, parse_money
from services.sheets import SheetsError, TabularStore

logger = logging.getLogger(__name__)

# Dashboard cells holding the annual budget and the expenses so far (row, column)
TOTAL_BUDGET_CELL = (4, 3)
TOTAL_EXPENSES_CELL = (4, 4)

DEFAULT_PROJECT_COLOR = "#000000"
FOOTER = "Purchasing Database"


class NotAProjectSheetError(Exception):
    """Raised when an action targets a sheet that is not a project sheet."""

    def __init__(self, sheet_name: str):
        self.sheet_name = sheet_name
        super().__init__("This action may only be performed in a project sheet")


class ProjectDirectory:
    """Maps project names to their sheets using the spreadsheet's named ranges."""

    def __init__(self, store: TabularStore, purchasing: PurchasingConfig, slack: Optional[SlackConfig] = None):
        self.store = store
        self.purchasing = purchasing
        self.slack = slack or SlackConfig()
        self.ranges = purchasing.named_ranges

    def _name_pairs(self) -> List[List[Any]]:
        return self.store.get_named_range_rows(self.ranges.project_names_to_sheets)

    def sheet_for_project(self, project_name: str) -> Optional[str]:
        for row in self._name_pairs():
            if len(row) >= 2 and row[0] == project_name:
                return str(row[1])
        return None

    def project_for_sheet(self, sheet_name: str) -> Optional[str]:
        for row in self._name_pairs():
            if len(row) >= 2 and row[1] == sheet_name:
                return str(row[0])
        return None

    def project_sheets(self) -> List[str]:
        return self.store.get_named_range_values(self.ranges.project_sheets)

    def is_project_sheet(self, sheet_name: str) -> bool:
        return sheet_name in self.project_sheets()

    def require_project_sheet(self, sheet_name: str) -> None:
        if not self.is_project_sheet(sheet_name):
            raise NotAProjectSheetError(sheet_name)

    def context_for_sheet(self, sheet_name: str) -> ProjectContext:
        """Project name, link and color for a project sheet."""
        self.require_project_sheet(sheet_name)
        return ProjectContext(
            name=self.project_for_sheet(sheet_name) or sheet_name,
            sheet_name=sheet_name,
            sheet_url=self.store.get_sheet_url(sheet_name),
            color=self.store.get_tab_color(sheet_name) or DEFAULT_PROJECT_COLOR,
        )

    def build_project_status_message(self, project: str, clock: Callable[[], float] = time.time) -> Dict[str, Any]:
        """Slack message describing the budget status of `project`.

        `project` may be either the project name or its sheet name.
        """
        sheet_name = self.sheet_for_project(project) or project
        if not self.is_project_sheet(sheet_name):
            return {"response_type": "ephemeral", "text": "Sorry, I don't recognize that project."}

        project_name = self.project_for_sheet(sheet_name) or project
        dashboard = f"{sheet_name}{self.purchasing.dashboard_suffix}"

        try:
            dashboard_url = self.store.get_sheet_url(dashboard)
            cells = self.store.get_rows(dashboard, TOTAL_BUDGET_CELL[0], 1, TOTAL_EXPENSES_CELL[1])[0]
        except SheetsError as e:
            logger.warning(f"Dashboard lookup failed for {sheet_name}: {e}")
            return {
                "response_type": "ephemeral",
                "text": "I couldn't find the dashboard sheet for that project.",
            }

        total_budget = parse_money(cells[TOTAL_BUDGET_CELL[1] - 1]) or 0.0
        total_expenses = parse_money(cells[TOTAL_EXPENSES_CELL[1] - 1]) or 0.0
        remaining = total_budget - total_expenses
        percent_remaining = f"{remaining / total_budget * 100:.0f}" if total_budget else "0"

        actions = [{"type": "button", "text": "Open Dashboard ↗", "url": dashboard_url}]
        try:
            actions.append({
                "type": "button",
                "text": "Open Purchasing Sheet ↗",
                "url": self.store.get_sheet_url(sheet_name),
            })
        except SheetsError:
            logger.debug(f"No sheet URL for {sheet_name}")

        return {
            "response_type": "in_channel",
            "attachments": [{
                "fallback": (
                    f"The {project_name} project has ${remaining:.2f} (or {percent_remaining}% "
                    f"remaining, out of a total annual budget of {total_budget:.2f}). For more "
                    f"details, see the <{dashboard_url}|project dashboard>."
                ),
                "color": self.store.get_tab_color(dashboard) or DEFAULT_PROJECT_COLOR,
                "title": f"{project_name} Budget Status",
                "text": "This is the latest budget information from the Purchasing Database:",
                "fields": [
                    {"title": "Total Budget", "value": f"${total_budget:.2f}", "short": True},
                    {"title": "Percent Remaining", "value": f"{percent_remaining}%", "short": True},
                    {"title": "Total Expenses", "value": f"${total_expenses:.2f}", "short": True},
                    {"title": "Amount Remaining", "value": f"${remaining:.2f}", "short": True},
                ],
                "footer": FOOTER,
                "footer_icon": self.slack.icon_url,
                "ts": clock(),
                "actions": actions,
            }],
        }
