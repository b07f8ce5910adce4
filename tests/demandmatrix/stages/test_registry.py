from __future__ import annotations

import pytest

from demandmatrix.stages.base import StageSpec
from demandmatrix.stages.client import ClientStage
from demandmatrix.stages.registry import (
    build_stages,
    default_stage_specs,
    normalize_stage_specs,
)
from demandmatrix.stages.skill import SkillStage


def test_default_stage_order():
    names = [s.name for s in build_stages()]
    assert names == ["time_horizon", "skills", "clients", "preferred_staff"]


def test_normalize_stage_specs_accepts_classes():
    specs = normalize_stage_specs([SkillStage])
    assert len(specs) == 1
    assert specs[0].cls is SkillStage


def test_normalize_stage_specs_rejects_other_types():
    with pytest.raises(TypeError):
        normalize_stage_specs(["skills"])  # type: ignore[list-item]


def test_default_stage_specs_returns_fresh_instances():
    first = default_stage_specs()
    second = default_stage_specs()
    assert first[0].cls is second[0].cls
    first[0].settings["demo"] = "x"
    assert "demo" not in second[0].settings


def test_build_stages_skips_disabled_and_applies_order():
    stages = build_stages(
        [
            StageSpec(cls=SkillStage, order=50),
            StageSpec(cls=ClientStage, order=5),
            StageSpec(cls=SkillStage, enabled=False),
        ]
    )
    assert [(s.name, s.order) for s in stages] == [("clients", 5), ("skills", 50)]


def test_stage_settings_are_passed_through():
    [stage] = build_stages([StageSpec(cls=SkillStage, settings={"label": "x"})])
    assert stage.setting("label", None) == "x"
    assert stage.setting("missing", 3) == 3
