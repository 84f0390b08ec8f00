"""State container for incremental mosaic assembly."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional

from tilestitch.buffer import PixelBuffer


class MosaicPhase(str, Enum):
    EMPTY = "empty"
    ROW_IN_PROGRESS = "row_in_progress"
    ROWS_ACCUMULATING = "rows_accumulating"
    MOSAIC_READY = "mosaic_ready"


@dataclass
class MosaicState:
    """Persistent state for `MosaicBuilder`.

    Each builder owns exactly one instance; nothing here is shared between
    builders, so independent mosaics (one per camera pair, say) never
    interfere with each other.
    """

    grid_width: int = 0
    grid_height: int = 0
    images_accumulated: int = 0
    current_row: PixelBuffer = field(default_factory=PixelBuffer.empty)
    completed_rows: List[PixelBuffer] = field(default_factory=list)
    latest_mosaic: Optional[PixelBuffer] = None
    complete: bool = False
    mosaics_completed: int = 0

    @property
    def tiles_per_mosaic(self) -> int:
        return self.grid_width * self.grid_height

    @property
    def phase(self) -> MosaicPhase:
        if self.complete:
            return MosaicPhase.MOSAIC_READY
        if self.completed_rows:
            return MosaicPhase.ROWS_ACCUMULATING
        if not self.current_row.is_empty:
            return MosaicPhase.ROW_IN_PROGRESS
        return MosaicPhase.EMPTY

    def clear_accumulation(self) -> None:
        """Drop partial rows and counters; keeps grid size and latest mosaic."""
        self.current_row = PixelBuffer.empty()
        self.completed_rows = []
        self.images_accumulated = 0

    def copy(self) -> "MosaicState":
        # Buffers are immutable, a shallow copy of the row list is enough.
        return replace(self, completed_rows=list(self.completed_rows))
