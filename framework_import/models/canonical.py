from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .framework import ParsedDimension

"""Canonical (durable) framework record and its denormalized question mirror.

The mirror is a derived projection: for a given framework id the full set of
DenormalizedQuestionRow is always `flatten_questions(framework)`. It is never
patched row by row, only replaced as a whole.
"""

__all__ = [
    "FRAMEWORK_VERSION",
    "CanonicalFramework",
    "DenormalizedQuestionRow",
    "flatten_questions",
    "order_index",
]

FRAMEWORK_VERSION = "1.0.0"


def order_index(dimension_order: int, question_order: int) -> int:
    """Composite mirror sort key.

    Collides with the next dimension once a dimension holds more than 99
    questions; not enforced.
    """
    return dimension_order * 100 + question_order


@dataclass(frozen=True)
class CanonicalFramework:
    id: str
    name: str
    description: str
    dimensions: tuple[ParsedDimension, ...]
    version: str = FRAMEWORK_VERSION
    organization_id: str | None = None
    imported_by: str | None = None
    imported_at: datetime | None = None
    created_at: datetime | None = None  # set by the store on first insert
    updated_at: datetime | None = None

    def dimensions_document(self) -> list[dict[str, Any]]:
        return [d.to_dict() for d in self.dimensions]


@dataclass(frozen=True)
class DenormalizedQuestionRow:
    framework_id: str
    text: str
    response_type: str
    dimension: str
    scoring_weight: float
    help_text: str | None
    order_index: int
    tags: tuple[str, ...] = field(default_factory=tuple)
    sub_dimension: str | None = None

    @property
    def options(self) -> dict[str, Any] | None:
        # tags が空なら options 自体を持たない
        if not self.tags:
            return None
        return {"tags": list(self.tags)}


def flatten_questions(framework: CanonicalFramework) -> list[DenormalizedQuestionRow]:
    """One mirror row per (dimension, question) pair of `framework`."""
    rows: list[DenormalizedQuestionRow] = []
    for dimension in framework.dimensions:
        for question in dimension.questions:
            rows.append(
                DenormalizedQuestionRow(
                    framework_id=framework.id,
                    text=question.text,
                    response_type=question.response_type.value if question.response_type else "rating_scale",
                    dimension=dimension.name,
                    scoring_weight=question.weight,
                    help_text=question.help_text,
                    order_index=order_index(dimension.order, question.order),
                    tags=question.tags,
                )
            )
    return rows
