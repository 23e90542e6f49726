"""Error types used to report several validation or consistency problems at once."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Iterable, Optional

INVALID = "Invalid value"
REQUIRED = "Required value"


class AggregateError(Exception):
    """A group of errors reported together."""

    def __init__(self, errors: Iterable[BaseException]):
        self.errors = list(errors)
        super().__init__(*self.errors)

    def __str__(self) -> str:
        messages = list(dict.fromkeys(str(error) for error in self.errors))
        if len(messages) == 1:
            return messages[0]
        return "[" + ", ".join(messages) + "]"


def _format_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return json.dumps(value)
    if value is None:
        return "null"
    if isinstance(value, int):
        return str(value)
    return repr(value)


@dataclass(eq=False)
class FieldError(Exception):
    """A problem with one field of an object, identified by its path."""

    kind: str
    field: str
    value: object = None
    detail: str = ""

    def __str__(self) -> str:
        body = self.kind
        if self.kind == INVALID:
            body += ": " + _format_value(self.value)
        if self.detail:
            body += ": " + self.detail
        return f"{self.field}: {body}"


def aggregate(errors: Iterable[Optional[BaseException]]) -> Optional[AggregateError]:
    """Bundle the given errors, or return None when there are none."""
    collected = [error for error in errors if error is not None]
    if not collected:
        return None
    return AggregateError(collected)