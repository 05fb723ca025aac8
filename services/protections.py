"""Sheet protection refresh (admin only)."""
import logging
from typing import List

from core.config import PurchasingConfig
from services.authorization import Session
from services.sheets import TabularStore

logger = logging.getLogger(__name__)


def refresh_protections(store: TabularStore, purchasing: PurchasingConfig, session: Session) -> List[str]:
    """Remove all sheet protections, then lock every project sheet to the officers.

    The Users sheet is never locked so new users can register themselves.
    Returns the names of the sheets that were protected.
    """
    session.require_admin("refresh protections")

    ranges = purchasing.named_ranges
    officers = store.get_named_range_values(ranges.approved_officers)
    project_sheets = store.get_named_range_values(ranges.project_sheets)

    removed = store.clear_sheet_protections()
    logger.info(f"Removed {removed} sheet protection(s)")

    protected = []
    for sheet in project_sheets:
        if sheet == purchasing.users_sheet:
            continue
        store.protect_sheet(sheet, officers)
        protected.append(sheet)
        logger.info(f"Updated protections for {sheet} ({len(officers)} editor(s))")
    return protected
