"""Registry of sync groups."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from choreo.core.sync.group import SyncGroup, SyncHost
from choreo.core.sync.models import (
    DEFAULT_CASCADE_OFFSET_MS,
    AnimationPhase,
    SyncGroupOptions,
    SyncGroupState,
    SyncPoint,
)

logger = logging.getLogger(__name__)


class SyncCoordinator:
    """Creates and tracks sync groups by id.

    Args:
        host: Orchestrator shared by every group
        cascade_offset_ms: Default cascade offset for groups created by id
    """

    def __init__(self, host: SyncHost, cascade_offset_ms: float = DEFAULT_CASCADE_OFFSET_MS):
        self.host = host
        self.cascade_offset_ms = cascade_offset_ms
        self._groups: dict[str, SyncGroup] = {}

    def create_group(self, options: SyncGroupOptions | str, **kwargs: Any) -> SyncGroup:
        """Create (or replace) a group.

        Args:
            options: Full options, or a group id combined with ``kwargs``
            **kwargs: SyncGroupOptions fields when ``options`` is an id

        Returns:
            The new group
        """
        if isinstance(options, str):
            kwargs.setdefault("cascade_offset_ms", self.cascade_offset_ms)
            options = SyncGroupOptions(id=options, **kwargs)

        if options.id in self._groups:
            logger.debug(f"Replacing sync group '{options.id}'")
        group = SyncGroup(options, self.host)
        self._groups[options.id] = group
        return group

    def get_group(self, group_id: str) -> SyncGroup | None:
        return self._groups.get(group_id)

    def remove_group(self, group_id: str) -> bool:
        """Remove a group, cancelling it first if it is running."""
        group = self._groups.pop(group_id, None)
        if group is None:
            return False
        if group.state in (SyncGroupState.PLAYING, SyncGroupState.PAUSED):
            group.cancel()
        return True

    def group_ids(self) -> list[str]:
        return list(self._groups)

    def cancel_all(self) -> None:
        for group in self._groups.values():
            group.cancel()

    @staticmethod
    def default_sync_points(phases: Sequence[AnimationPhase] | None = None) -> list[SyncPoint]:
        """Standard phase sync points (prep, start, middle, end, after by default)."""
        return [SyncPoint.standard(phase) for phase in (phases or list(AnimationPhase))]
