"""Stagger distributor: play order and delays for N-element staggers."""

from choreo.core.stagger.distributor import (
    apply_direction,
    apply_grouping,
    apply_pattern,
    distribute,
    distribution_curve,
    order_targets,
)
from choreo.core.stagger.models import (
    Category,
    DistributionEasing,
    DistributionPattern,
    GroupingStrategy,
    Position,
    StaggerDirection,
    StaggerOptions,
    StaggerPlan,
    StaggerSlot,
    StaggerTarget,
)

__all__ = [
    "Category",
    "DistributionEasing",
    "DistributionPattern",
    "GroupingStrategy",
    "Position",
    "StaggerDirection",
    "StaggerOptions",
    "StaggerPlan",
    "StaggerSlot",
    "StaggerTarget",
    "apply_direction",
    "apply_grouping",
    "apply_pattern",
    "distribute",
    "distribution_curve",
    "order_targets",
]
