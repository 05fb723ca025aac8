"""Text helpers for user-facing messages."""
import re
from typing import Iterable, List, Mapping

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def render_template(template: str, values: Mapping[str, str]) -> str:
    """Substitute `{name}` placeholders in a single pass.

    Substituted values are inserted literally: a value that itself contains
    `{numMarked}` is not expanded again. Unknown placeholders are left as-is.
    """
    def substitute(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key in values:
            return values[key]
        return match.group(0)

    return _PLACEHOLDER.sub(substitute, template)


def make_list(elements: Iterable[str], conjunction: str = "and", oxford_comma: bool = True) -> str:
    """Turn strings into a readable list: "One, Two, and Three".

    With an empty conjunction the list is plain comma-separated.
    """
    items: List[str] = [e for e in elements if e]
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    if not conjunction:
        return ", ".join(items)
    if len(items) == 2:
        return f"{items[0]} {conjunction} {items[1]}"
    separator = "," if oxford_comma else ""
    return f"{', '.join(items[:-1])}{separator} {conjunction} {items[-1]}"


def wrap_in_double_quotes(text: str) -> str:
    """Quote a string; an empty string becomes a quoted space."""
    return f'"{text or " "}"'


def truncate_string(text: str, chars: int) -> str:
    """Shorten `text` to at most `chars` characters, ending in "..."."""
    text = str(text)
    if len(text) > chars:
        return text[: chars - 3] + "..."
    return text


def dedupe(values: Iterable[str]) -> List[str]:
    """Drop blanks and repeats, keeping first-seen order."""
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen
