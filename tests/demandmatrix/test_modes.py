from __future__ import annotations

import pytest

from demandmatrix.matrix import PreferredStaffFilter, TaskContribution
from demandmatrix.modes import StaffFilterMode, resolve_mode, task_passes


def make_task(staff) -> TaskContribution:
    return TaskContribution("C1", "T1", "Tax", 1.0, preferred_staff=staff)


@pytest.mark.parametrize(
    "ps, expected",
    [
        (PreferredStaffFilter(), StaffFilterMode.ALL),
        (PreferredStaffFilter(include_unassigned=True), StaffFilterMode.ALL),
        (PreferredStaffFilter(staff_ids={"S1"}), StaffFilterMode.SPECIFIC),
        (
            PreferredStaffFilter(staff_ids={"S1"}, show_only_preferred=True),
            StaffFilterMode.SPECIFIC,
        ),
        (PreferredStaffFilter(show_only_preferred=True), StaffFilterMode.NONE),
    ],
)
def test_resolve_mode(ps, expected):
    assert resolve_mode(ps) is expected


def test_specific_mode_policy():
    ps = PreferredStaffFilter(staff_ids={"S1"})
    mode = resolve_mode(ps)
    assert task_passes(mode, ps, make_task("S1"))
    assert task_passes(mode, ps, make_task({"staffId": "S1", "full_name": "Sam"}))
    assert not task_passes(mode, ps, make_task("S2"))
    assert not task_passes(mode, ps, make_task(None))


def test_specific_mode_with_unassigned():
    ps = PreferredStaffFilter(staff_ids={"S1"}, include_unassigned=True)
    mode = resolve_mode(ps)
    assert task_passes(mode, ps, make_task(None))
    assert task_passes(mode, ps, make_task("   "))
    assert not task_passes(mode, ps, make_task("S2"))


def test_none_mode_keeps_only_unassigned():
    ps = PreferredStaffFilter(show_only_preferred=True)
    mode = resolve_mode(ps)
    assert task_passes(mode, ps, make_task(None))
    assert task_passes(mode, ps, make_task({"foo": 1}))
    assert not task_passes(mode, ps, make_task("S1"))


def test_all_mode_keeps_everything():
    ps = PreferredStaffFilter()
    for staff in ("S1", None, {"id": "S9"}):
        assert task_passes(StaffFilterMode.ALL, ps, make_task(staff))
