import logging
from typing import Callable, Iterable, List, Optional, Sequence

from app.models.scheduling.shift import Shift
from app.models.shared.enums import ConflictSeverity, ConflictType
from app.schemas.scheduling.shift_schema import ConflictDetail
from app.utils.validators.validation_utils import time_windows_overlap

logger = logging.getLogger(__name__)

# A rule inspects one shift against every shift of the same employee in the
# same schedule and reports at most one conflict.
ConflictRule = Callable[[Shift, Sequence[Shift]], Optional[ConflictDetail]]


def detect_overlap(shift: Shift, employee_shifts: Sequence[Shift]) -> Optional[ConflictDetail]:
    """Report the first other shift of the same employee whose window overlaps this one"""
    if shift.employee_id is None:
        return None

    for other in employee_shifts:
        if other.id == shift.id or other.employee_id != shift.employee_id:
            continue
        if getattr(other, "deleted_at", None) is not None:
            continue
        if time_windows_overlap(shift.start_time, shift.end_time, other.start_time, other.end_time):
            return ConflictDetail(
                type=ConflictType.OVERLAP,
                severity=ConflictSeverity.ERROR,
                message=(
                    f"Overlaps with shift on {other.start_time:%d/%m} "
                    f"{other.start_time:%H:%M} - {other.end_time:%H:%M}"
                ),
                conflicting_shift_id=other.id,
            )
    return None


DEFAULT_RULES: tuple = (detect_overlap,)


class ConflictDetectionService:
    """
    Derives Conflict records for shifts. Holds no state beyond its rule set;
    rest-period, max-hours or availability checks plug in as extra rules.
    """

    def __init__(self, rules: Optional[Iterable[ConflictRule]] = None):
        self.rules = tuple(rules) if rules is not None else DEFAULT_RULES

    def detect_conflicts(self, shift: Shift, employee_shifts: Sequence[Shift]) -> List[ConflictDetail]:
        if shift.employee_id is None:
            return []

        conflicts = []
        for rule in self.rules:
            conflict = rule(shift, employee_shifts)
            if conflict:
                conflicts.append(conflict)
        return conflicts

    def apply(self, shift: Shift, employee_shifts: Sequence[Shift]) -> List[ConflictDetail]:
        """Recompute and attach conflicts to a single shift"""
        conflicts = self.detect_conflicts(shift, employee_shifts)
        shift.has_conflicts = len(conflicts) > 0
        # Assign a fresh list so the JSON column is marked dirty
        shift.conflict_details = [c.model_dump(mode="json") for c in conflicts]
        return conflicts

    def apply_to_all(self, employee_shifts: Sequence[Shift]) -> int:
        """Recompute every shift of one employee's set; returns how many are in conflict"""
        flagged = 0
        for shift in employee_shifts:
            if self.apply(shift, employee_shifts):
                flagged += 1
        return flagged

    @staticmethod
    def clear(shift: Shift) -> None:
        shift.has_conflicts = False
        shift.conflict_details = []
