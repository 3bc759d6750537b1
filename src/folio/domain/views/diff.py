"""View models for holdings import diffs."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from folio.domain.models import DiffType, Holding
from folio.schemas import HoldingImportRow


@dataclass
class FieldChange:
    """Old and new value of one compared field."""

    old: Decimal
    new: Decimal


@dataclass
class HoldingDiff:
    """One extracted row classified against the current holdings."""

    type: DiffType
    extracted: HoldingImportRow
    existing: Optional[Holding] = None
    changes: dict[str, FieldChange] = field(default_factory=dict)
    accepted: bool = False


@dataclass
class DiffSummary:
    """Counts per diff type and the value added by new holdings."""

    new_count: int = 0
    changed_count: int = 0
    unchanged_count: int = 0
    estimated_value_change: Decimal = field(default_factory=lambda: Decimal("0"))
