"""Data models for the purchasing tracker."""
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Sequence


@dataclass(frozen=True)
class Column:
    """A named column slot in a project sheet (1-based index)."""
    index: int
    name: Optional[str] = None

    @property
    def offset(self) -> int:
        """0-based position of the column within a row."""
        return self.index - 1

    @property
    def label(self) -> str:
        return self.name or f"Column {self.index}"

    def value_in(self, row: Sequence[Any]) -> Any:
        """Cell value of this column in `row`, or "" if the row is short."""
        if self.offset < len(row):
            return row[self.offset]
        return ""


class ItemColumns:
    """Relevant columns in the project sheets, as 1-based indexes."""
    STATUS = Column(1, "Status")
    NAME = Column(2, "Name")
    SUPPLIER = Column(3, "Supplier")
    PRODUCT_NUM = Column(4, "Product Number")
    LINK = Column(5, "Link")
    UNIT_PRICE = Column(6, "Unit Price")
    QUANTITY = Column(7, "Quantity")
    SHIPPING = Column(8, "Shipping Price")
    TOTAL_PRICE = Column(9, "Total Price")
    CATEGORY = Column(10, "Category")
    REQUEST_COMMENTS = Column(11, "Request Comments")
    REQUEST_EMAIL = Column(12, "Requestor Email")
    REQUEST_DATE = Column(13, "Request Date")
    OFFICER_EMAIL = Column(14, "Financial Officer Email")
    OFFICER_COMMENTS = Column(15, "Financial Officer Comments")
    ACCOUNT = Column(16, "Purchasing Account")
    REQUEST_ID = Column(17, "Request ID")
    SUBMIT_DATE = Column(18, "Submit Date")
    UPDATE_DATE = Column(19, "Update Date")
    ARRIVE_DATE = Column(20, "Arrival Date")
    RECEIVE_EMAIL = Column(21, "Receiver Email")
    RECEIVE_DATE = Column(22, "Receive Date")

    @classmethod
    def all(cls) -> List[Column]:
        columns = [v for v in vars(cls).values() if isinstance(v, Column)]
        return sorted(columns, key=lambda c: c.index)

    @classmethod
    def width(cls) -> int:
        return max(c.index for c in cls.all())


class TargetUsers(str, Enum):
    """Audience tagged in a status' Slack message."""
    CHANNEL = "CHANNEL"        # The entire channel
    OFFICERS = "OFFICERS"      # All financial officers that haven't opted out
    REQUESTORS = "REQUESTORS"  # The people who requested the affected items


def is_blank(value: Any) -> bool:
    """True if a cell holds no value (None or whitespace only)."""
    return value is None or str(value).strip() == ""


def parse_money(value: Any) -> Optional[float]:
    """Parse a sheet price cell ("$1,234.50", 12.5, "12") into a float."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    text = str(value or "").strip().replace("$", "").replace(",", "")
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


@dataclass
class Item:
    """Metadata about a single item affected by an action, used for notifications."""
    name: str = ""
    quantity: str = ""
    total_price: Optional[float] = None
    unit_price: Optional[float] = None
    category: str = ""
    requestor_comments: str = ""
    officer_comments: str = ""
    supplier: str = ""
    product_num: str = ""
    link: str = ""

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "Item":
        """Project the item-relevant fields out of a sheet row."""
        def text(column: Column) -> str:
            value = column.value_in(row)
            return "" if value is None else str(value)

        return cls(
            name=text(ItemColumns.NAME),
            quantity=text(ItemColumns.QUANTITY),
            total_price=parse_money(ItemColumns.TOTAL_PRICE.value_in(row)),
            unit_price=parse_money(ItemColumns.UNIT_PRICE.value_in(row)),
            category=text(ItemColumns.CATEGORY),
            requestor_comments=text(ItemColumns.REQUEST_COMMENTS),
            officer_comments=text(ItemColumns.OFFICER_COMMENTS),
            supplier=text(ItemColumns.SUPPLIER),
            product_num=text(ItemColumns.PRODUCT_NUM),
            link=text(ItemColumns.LINK),
        )


@dataclass(frozen=True)
class User:
    """The person performing an action."""
    email: str
    full_name: str
    slack_id: str
    is_financial_officer: bool = False
    phone: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return not self.email


@dataclass(frozen=True)
class RowRange:
    """A block of consecutive sheet rows (1-based, inclusive start)."""
    start_row: int
    num_rows: int

    @property
    def end_row(self) -> int:
        return self.start_row + self.num_rows - 1

    def rows(self) -> range:
        return range(self.start_row, self.start_row + self.num_rows)

    def clip(self, num_header_rows: int, last_row: int) -> Optional["RowRange"]:
        """Clip the range to data rows: past the header, not beyond `last_row`."""
        start = max(self.start_row, num_header_rows + 1)
        end = min(self.end_row, last_row)
        if end < start:
            return None
        return RowRange(start, end - start + 1)

    @classmethod
    def parse(cls, spec: str) -> List["RowRange"]:
        """Parse "3-5,9" into [RowRange(3, 3), RowRange(9, 1)]."""
        ranges = []
        for part in spec.split(","):
            part = part.strip()
            if not part:
                continue
            if "-" in part:
                first, last = (int(p) for p in part.split("-", 1))
            else:
                first = last = int(part)
            if first < 1 or last < first:
                raise ValueError(f"Invalid row range: {part!r}")
            ranges.append(cls(first, last - first + 1))
        return ranges


@dataclass(frozen=True)
class ProjectContext:
    """Project information attached to notifications."""
    name: str
    sheet_name: str
    sheet_url: str
    color: str = "#000000"
