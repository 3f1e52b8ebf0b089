"""Domain models for the CSV framework importer.

Typed records for every stage of the two-phase import: flat CSV rows, the
grouped framework tree, per-row diagnostics, staged previews and the
canonical framework with its denormalized question mirror.
"""

from .canonical import CanonicalFramework, DenormalizedQuestionRow, flatten_questions
from .config_models import DatabaseConfig, ImportConfig, StagingConfig
from .framework import ParsedDimension, ParsedFramework, ParsedQuestion, ResponseType
from .preview import ConfirmResult, ImportContext, PreviewPayload, PreviewResult
from .row_data import FlatRow
from .row_outcome import ImportSummary, RowOutcome, RowStatus

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    "StagingConfig",
    # Parsing / grouping models
    "FlatRow",
    "ResponseType",
    "ParsedQuestion",
    "ParsedDimension",
    "ParsedFramework",
    "RowStatus",
    "RowOutcome",
    "ImportSummary",
    # Two-phase import models
    "ImportContext",
    "PreviewPayload",
    "PreviewResult",
    "ConfirmResult",
    # Persistence models
    "CanonicalFramework",
    "DenormalizedQuestionRow",
    "flatten_questions",
]
