"""Exception taxonomy shared by the parser, evaluator and frame builder.

All errors derive from :class:`GraphCalcError` (a ``ValueError``) so callers
that only care about "the input was bad" can catch a single type, while the
refresh pipeline distinguishes the stage that failed:

- ``ParseError``: malformed expression text, reported per input field with a
  caret line pointing at the failing column.
- ``FormatError``: well-formed text with the wrong shape (a range that is not
  ``lo..hi``, a variable entry that is not ``name = expr``).
- ``EvaluationError``: unknown identifier, unknown function, wrong arity.
- ``CyclicDefinitionError``: variables that reference each other in a loop.

Non-finite arithmetic results (NaN, Infinity) are never errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

__all__ = [
    "CyclicDefinitionError",
    "EvaluationError",
    "FormatError",
    "GraphCalcError",
    "ParseError",
    "SourceSpan",
]


@dataclass(frozen=True)
class SourceSpan:
    """Half-open character range ``[start, stop)`` inside one input text."""

    start: int
    stop: int

    def __len__(self) -> int:
        return max(self.stop - self.start, 0)


class GraphCalcError(ValueError):
    """Base class for all user-facing graphcalc errors."""


class ParseError(GraphCalcError):
    """Raised when an input field cannot be parsed.

    Parameters
    ----------
    field_name : str
        Name of the input field ("Formula", "Variables", "Range").
    message : str
        Parser diagnostic.
    span : SourceSpan or None
        Location of the offending text, when known.
    text : str
        The complete field text, used to build the caret context.
    """

    def __init__(
        self,
        field_name: str,
        message: str,
        span: Optional[SourceSpan] = None,
        text: str = "",
    ) -> None:
        self.field_name = field_name
        self.message = message
        self.span = span
        self.text = text
        super().__init__(self._format())

    def _format(self) -> str:
        msg = f"{self.field_name}: {self.message}"
        if self.span is None or not self.text:
            return msg
        line_start = self.text.rfind("\n", 0, self.span.start) + 1
        line_end = self.text.find("\n", self.span.start)
        if line_end < 0:
            line_end = len(self.text)
        column = self.span.start - line_start
        return f"{msg}\n{self.text[line_start:line_end]}\n{'-' * column}^"


class FormatError(GraphCalcError):
    """Raised for structurally invalid range texts or variable entries."""


class EvaluationError(GraphCalcError):
    """Raised when an expression references something that cannot be evaluated."""


class CyclicDefinitionError(EvaluationError):
    """Raised when variable definitions reference each other in a cycle.

    Parameters
    ----------
    cycle : tuple[str, ...]
        Variable names along the cycle, first name repeated at the end.
    """

    def __init__(self, cycle: tuple[str, ...]) -> None:
        self.cycle = tuple(cycle)
        super().__init__(f"Variables are defined in terms of each other: {' -> '.join(self.cycle)}")
