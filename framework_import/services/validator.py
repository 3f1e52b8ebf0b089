from __future__ import annotations

import logging
import math
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from ..errors import MalformedInputError
from ..models.framework import ParsedDimension, ParsedFramework, ParsedQuestion, ResponseType
from ..models.row_data import FlatRow
from ..models.row_outcome import ImportSummary, RowOutcome
from ..tabular.reader import ensure_columns

"""Row validation and grouping.

Folds flat CSV rows into a single framework -> dimension -> question tree and
records the issues of every row. Grouping never stops on validation problems:
a partially invalid file still produces a complete tree for preview display,
and only confirm refuses to commit it.
"""

__all__ = [
    "GroupingResult",
    "validate_rows",
    "parse_order",
    "parse_weight",
    "parse_tags",
]

logger = logging.getLogger(__name__)

DEFAULT_WEIGHT = 1.0
_ORDER_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class GroupingResult:
    framework: ParsedFramework
    rows: tuple[RowOutcome, ...]
    summary: ImportSummary


@dataclass
class _DimensionBuilder:
    order: int
    name: str
    description: str
    questions: list[ParsedQuestion] = field(default_factory=list)
    seen_orders: set[int] = field(default_factory=set)

    def has_question(self, order: int) -> bool:
        return order in self.seen_orders

    def add(self, question: ParsedQuestion) -> None:
        self.questions.append(question)
        self.seen_orders.add(question.order)

    def build(self) -> ParsedDimension:
        # sorted() は安定ソート: 同一 order の重複行はファイル順を保つ
        questions = sorted(self.questions, key=lambda q: q.order)
        return ParsedDimension(
            order=self.order,
            name=self.name,
            description=self.description,
            weight=DEFAULT_WEIGHT,
            questions=tuple(questions),
        )


def parse_order(value: str, field_name: str, issues: list[str]) -> int:
    """Parse a positive integer order; invalid values record an issue and yield 0.

    Rows with an invalid order still group under key 0 instead of being dropped.
    """
    # ASCII 数字のみ ("1_0", 全角数字, "+1" は不可)
    parsed = int(value) if _ORDER_RE.fullmatch(value) else 0
    if parsed < 1:
        issues.append(f"{field_name} must be a positive integer")
        return 0
    return parsed


def parse_weight(value: str, issues: list[str]) -> float:
    """Blank -> 1.0. Out of [0, 1] or unparsable -> issue, and 1.0 is stored."""
    if value == "":
        return DEFAULT_WEIGHT
    try:
        parsed = float(value)
    except ValueError:
        parsed = math.nan
    if math.isnan(parsed) or parsed < 0 or parsed > 1:
        issues.append("weight must be a number between 0 and 1")
        return DEFAULT_WEIGHT
    return parsed


def parse_tags(value: str) -> tuple[str, ...]:
    """Split on ';', trim, drop empties. Order and duplicates are preserved."""
    return tuple(tag.strip() for tag in value.split(";") if tag.strip())


def _parse_response_type(value: str, issues: list[str]) -> ResponseType | None:
    if not value:
        issues.append("response_type is required")
        return None
    response_type = ResponseType.parse(value)
    if response_type is None:
        issues.append(f'response_type "{value}" is not supported')
    return response_type


def validate_rows(rows: Sequence[FlatRow]) -> GroupingResult:
    """Validate rows in file order and group them into a ParsedFramework.

    Raises:
        MalformedInputError: no rows, required columns missing, or a blank
            framework_name on the first row.
    """
    if not rows:
        raise MalformedInputError("CSV file is empty")
    ensure_columns(rows[0].values.keys())

    first = rows[0]
    framework_name = first.get("framework_name")
    if not framework_name:
        raise MalformedInputError("framework_name is required in all rows")
    framework_description = first.get("framework_description")
    framework_id = first.get("framework_id") or None

    dimensions: dict[int, _DimensionBuilder] = {}
    outcomes: list[RowOutcome] = []

    for row in rows:
        issues: list[str] = []

        if row.get("framework_name") != framework_name:
            issues.append("framework_name must match in every row")
        if "framework_id" in row.values and (row.get("framework_id") or None) != framework_id:
            issues.append("framework_id must match in every row")

        dimension_name = row.get("dimension_name")
        if not dimension_name:
            issues.append("dimension_name is required")

        dimension_order = parse_order(row.get("dimension_order"), "dimension_order", issues)
        question_order = parse_order(row.get("question_order"), "question_order", issues)
        response_type = _parse_response_type(row.get("response_type"), issues)
        weight = parse_weight(row.get("weight"), issues)

        dimension = dimensions.get(dimension_order)
        if dimension is None:
            dimension = _DimensionBuilder(
                order=dimension_order,
                name=dimension_name,
                description=row.get("dimension_description"),
            )
            dimensions[dimension_order] = dimension

        question = ParsedQuestion(
            order=question_order,
            text=row.get("question_text"),
            response_type=response_type,
            help_text=row.get("help_text"),
            weight=weight,
            tags=parse_tags(row.get("tags")),
        )
        if not question.text:
            issues.append("question_text is required")

        if dimension.has_question(question.order):
            issues.append(f"question_order {question.order} already used for dimension {dimension.name}")
        dimension.add(question)

        outcomes.append(RowOutcome(row_number=row.row_number, issues=tuple(issues)))

    framework = ParsedFramework(
        name=framework_name,
        description=framework_description,
        dimensions=tuple(d.build() for d in sorted(dimensions.values(), key=lambda d: d.order)),
        id=framework_id,
    )
    summary = ImportSummary.from_outcomes(outcomes)
    logger.debug(
        f"grouped framework={framework_name!r} dimensions={len(framework.dimensions)} "
        f"questions={framework.question_count} errors={summary.errors}"
    )
    return GroupingResult(framework=framework, rows=tuple(outcomes), summary=summary)
