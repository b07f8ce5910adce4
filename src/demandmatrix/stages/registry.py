from __future__ import annotations

import logging
from typing import Sequence, Tuple, Type

from demandmatrix.stages.base import FilterStage, StageSpec
from demandmatrix.stages.client import ClientStage
from demandmatrix.stages.preferred_staff import PreferredStaffStage
from demandmatrix.stages.skill import SkillStage
from demandmatrix.stages.time_horizon import TimeHorizonStage

logger = logging.getLogger(__name__)

StageTemplate = Tuple[Type[FilterStage], int, dict[str, object]]

TIME_HORIZON_STAGE_TEMPLATE: StageTemplate = (TimeHorizonStage, 10, {})
SKILL_STAGE_TEMPLATE: StageTemplate = (SkillStage, 20, {})
CLIENT_STAGE_TEMPLATE: StageTemplate = (ClientStage, 30, {})
PREFERRED_STAFF_STAGE_TEMPLATE: StageTemplate = (PreferredStaffStage, 40, {})

_DEFAULT_STAGE_TEMPLATES: list[StageTemplate] = [
    TIME_HORIZON_STAGE_TEMPLATE,
    SKILL_STAGE_TEMPLATE,
    CLIENT_STAGE_TEMPLATE,
    PREFERRED_STAFF_STAGE_TEMPLATE,
]


def default_stage_specs() -> list[StageSpec]:
    """Return fresh copies of the default stage specifications."""
    logger.debug("Using default filter stages")
    return [
        StageSpec(cls=cls, order=order, settings=dict(settings))
        for cls, order, settings in _DEFAULT_STAGE_TEMPLATES
    ]


def normalize_stage_specs(
    stages: Sequence[StageSpec | Type[FilterStage]] | None,
) -> list[StageSpec]:
    """Turn user-provided stages into StageSpec objects."""
    if stages is None:
        return default_stage_specs()

    normalized: list[StageSpec] = []
    for item in stages:
        if isinstance(item, StageSpec):
            normalized.append(item)
        elif isinstance(item, type) and issubclass(item, FilterStage):
            normalized.append(StageSpec(cls=item))
        else:
            raise TypeError(
                "Stages must be StageSpec instances or FilterStage subclasses; "
                f"got {type(item)!r}"
            )
    return normalized


def build_stages(
    stages: Sequence[StageSpec | Type[FilterStage]] | None = None,
) -> list[FilterStage]:
    """Instantiate the enabled stages, sorted by their run order."""
    built: list[FilterStage] = []
    for spec in normalize_stage_specs(stages):
        if not spec.enabled:
            continue
        stage = spec.cls(**spec.settings)
        if spec.order is not None:
            stage.order = spec.order
        built.append(stage)
    # stable sort keeps insertion order for equal orders
    return sorted(built, key=lambda s: s.order)
