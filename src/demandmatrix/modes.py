from __future__ import annotations

from enum import Enum

from demandmatrix.matrix import PreferredStaffFilter, TaskContribution
from demandmatrix.staff_ref import resolve_id


class StaffFilterMode(str, Enum):
    ALL = "all"
    SPECIFIC = "specific"
    NONE = "none"


def resolve_mode(ps: PreferredStaffFilter) -> StaffFilterMode:
    """
    Derive the preferred-staff mode from the filter flags.

      staff_ids non-empty                  -> SPECIFIC
      staff_ids empty, show_only_preferred -> NONE  (unassigned tasks only)
      otherwise                            -> ALL   (no filtering)

    A non-empty staff_ids wins over show_only_preferred.
    """
    if ps.staff_ids:
        return StaffFilterMode.SPECIFIC
    if ps.show_only_preferred:
        return StaffFilterMode.NONE
    return StaffFilterMode.ALL


def task_passes(
    mode: StaffFilterMode, ps: PreferredStaffFilter, task: TaskContribution
) -> bool:
    """Whether `task` is retained under `mode`."""
    if mode is StaffFilterMode.ALL:
        return True
    staff_id = resolve_id(task.preferred_staff)
    if mode is StaffFilterMode.NONE:
        return staff_id is None
    if staff_id is None:
        return ps.include_unassigned
    # Assigned to someone outside the selection is dropped even with include_unassigned.
    return staff_id in ps.staff_ids
