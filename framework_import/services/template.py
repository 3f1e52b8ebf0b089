from __future__ import annotations

import pandas as pd

from ..tabular.reader import REQUIRED_COLUMNS

"""Downloadable CSV template: the fixed header plus one illustrative row."""

TEMPLATE_FILENAME = "framework-import-template.csv"

SAMPLE_ROW: tuple[str, ...] = (
    "Sample Framework",
    "High-level description of the framework",
    "1",
    "Strategy & Governance",
    "Dimension description",
    "1",
    "Describe your AI strategy maturity",
    "rating_scale",
    "Guidance for respondents (optional)",
    "1",
    "strategy;governance",
)


def generate_template() -> str:
    df = pd.DataFrame([SAMPLE_ROW], columns=list(REQUIRED_COLUMNS))
    return df.to_csv(index=False, lineterminator="\n")
