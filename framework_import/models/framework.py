from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Framework tree models for the CSV framework importer.

A preview groups flat CSV rows into ParsedFramework -> ParsedDimension ->
ParsedQuestion. The same shape is later persisted as the `dimensions` document
of a canonical framework, so each record maps to/from the camelCase dict form
used in the staging store and in the frameworks table.
"""

__all__ = [
    "ResponseType",
    "ParsedQuestion",
    "ParsedDimension",
    "ParsedFramework",
]


class ResponseType(Enum):
    """Allowed answer types for a question."""
    RATING_SCALE = "rating_scale"
    BOOLEAN = "boolean"
    TEXT = "text"
    LONG_TEXT = "long_text"
    FILE_UPLOAD = "file_upload"

    @classmethod
    def parse(cls, value: str | None) -> ResponseType | None:
        """Return the enum member for `value`, or None if unsupported/blank."""
        if not value:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class ParsedQuestion:
    order: int
    text: str
    response_type: ResponseType | None  # None only when the row carried an invalid value
    help_text: str = ""
    weight: float = 1.0
    tags: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "order": self.order,
            "text": self.text,
            "responseType": self.response_type.value if self.response_type else None,
            "helpText": self.help_text,
            "weight": self.weight,
            "tags": list(self.tags),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> ParsedQuestion:
        return ParsedQuestion(
            order=int(data["order"]),
            text=data.get("text") or "",
            response_type=ResponseType.parse(data.get("responseType")),
            help_text=data.get("helpText") or "",
            weight=float(data.get("weight", 1)),
            tags=tuple(data.get("tags") or ()),
        )


@dataclass(frozen=True)
class ParsedDimension:
    order: int
    name: str
    description: str = ""
    weight: float = 1.0
    questions: tuple[ParsedQuestion, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "order": self.order,
            "name": self.name,
            "description": self.description,
            "weight": self.weight,
            "questions": [q.to_dict() for q in self.questions],
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> ParsedDimension:
        return ParsedDimension(
            order=int(data["order"]),
            name=data.get("name") or "",
            description=data.get("description") or "",
            weight=float(data.get("weight", 1)),
            questions=tuple(ParsedQuestion.from_dict(q) for q in data.get("questions") or ()),
        )


@dataclass(frozen=True)
class ParsedFramework:
    """Result of grouping: exactly one framework per import.

    `id` is only set when the file pinned one through the optional
    `framework_id` column; otherwise confirm derives it from the name.
    """
    name: str
    description: str = ""
    dimensions: tuple[ParsedDimension, ...] = field(default_factory=tuple)
    id: str | None = None

    @property
    def question_count(self) -> int:
        return sum(len(d.questions) for d in self.dimensions)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "dimensions": [d.to_dict() for d in self.dimensions],
        }
        if self.id:
            data["id"] = self.id
        return data

    @staticmethod
    def from_dict(data: dict[str, Any]) -> ParsedFramework:
        return ParsedFramework(
            name=data["name"],
            description=data.get("description") or "",
            dimensions=tuple(ParsedDimension.from_dict(d) for d in data.get("dimensions") or ()),
            id=data.get("id") or None,
        )
