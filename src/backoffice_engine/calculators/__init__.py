"""Payroll calculation engine."""

from backoffice_engine.calculators.engine import PayrollEngine
from backoffice_engine.calculators.line_builder import LineItemBuilder
from backoffice_engine.calculators.rate_resolver import RateResolver
from backoffice_engine.calculators.types import (
    AssignmentInput,
    GeneratedRun,
    LineCandidate,
    Proration,
    RateResolution,
    RateSource,
    RunTotals,
)

__all__ = [
    "PayrollEngine",
    "LineItemBuilder",
    "RateResolver",
    "AssignmentInput",
    "GeneratedRun",
    "LineCandidate",
    "Proration",
    "RateResolution",
    "RateSource",
    "RunTotals",
]
