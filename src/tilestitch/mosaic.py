"""Incremental collage assembly from a stream of same-sized tiles.

Tiles are placed in row-major order: the first `grid_width` appends form
row 0 left to right, the next `grid_width` form row 1, and so on. Once
`grid_width * grid_height` tiles have arrived the rows are stacked into a
single mosaic, published via `latest_mosaic()`, and accumulation restarts.

A builder is not thread-safe. Drive it from one thread or guard it with a
lock; independent builders share no state.
"""

from __future__ import annotations

import logging
import numbers
from typing import List

from tilestitch.buffer import PixelBuffer
from tilestitch.errors import InvalidDimensionsError, NoMosaicAvailableError
from tilestitch.mosaic_state import MosaicPhase, MosaicState
from tilestitch.stitcher import stitch_horizontal, stitch_vertical


logger = logging.getLogger(__name__)


def _check_count(value: int, name: str, operation: str) -> int:
    # bool is an int subclass but never a tile count.
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise InvalidDimensionsError(
            f"{name} must be an integer (got {value!r})", operation=operation
        )
    value = int(value)
    if value < 0:
        raise InvalidDimensionsError(f"{name} must be non-negative (got {value})", operation=operation)
    return value


class MosaicBuilder:
    """Accumulate tiles into a `columns x rows` mosaic.

    Example:
        builder = MosaicBuilder(columns=3, rows=3)
        for frame in frames:
            builder.append(frame)
            if builder.is_complete():
                save(builder.latest_mosaic())
    """

    def __init__(self, columns: int = 0, rows: int = 0) -> None:
        self.state = MosaicState(
            grid_width=_check_count(columns, "columns", "MosaicBuilder"),
            grid_height=_check_count(rows, "rows", "MosaicBuilder"),
        )

    # --- grid configuration ---

    def configure(self, columns: int, rows: int) -> None:
        """Set the grid size.

        Changing the size mid-grid keeps the partial rows as they are; the
        modulo-based row/grid boundaries then refer to the new size.
        """
        columns = _check_count(columns, "columns", "configure")
        rows = _check_count(rows, "rows", "configure")
        self._warn_if_stale(columns, rows)
        self.state.grid_width = columns
        self.state.grid_height = rows

    @property
    def grid_width(self) -> int:
        return self.state.grid_width

    @grid_width.setter
    def grid_width(self, columns: int) -> None:
        self.configure(columns, self.state.grid_height)

    @property
    def grid_height(self) -> int:
        return self.state.grid_height

    @grid_height.setter
    def grid_height(self, rows: int) -> None:
        self.configure(self.state.grid_width, rows)

    def _warn_if_stale(self, columns: int, rows: int) -> None:
        state = self.state
        if state.images_accumulated == 0:
            return
        if (columns, rows) == (state.grid_width, state.grid_height):
            return
        # WARNING: 部分累积的行会按新网格计算，结果可能错位。
        logger.warning(
            "Mosaic grid changed from %sx%s to %sx%s with %s tile(s) pending; partial rows are kept as-is",
            state.grid_width,
            state.grid_height,
            columns,
            rows,
            state.images_accumulated,
        )

    # --- accumulation ---

    def append(self, image: PixelBuffer) -> None:
        """Add the next tile in row-major order.

        The completion flag is cleared before anything else, so it is False
        after this call even if the append fails. On failure the accumulated
        rows and counters are left exactly as they were.

        Raises:
            InvalidDimensionsError: Grid size is zero, or tile sizes disagree.
            IncompatibleFormatError: Tile format differs from the row's.
            UnsupportedFormatError: Tile uses a packed pixel format.
        """
        state = self.state
        state.complete = False

        if state.grid_width == 0 or state.grid_height == 0:
            raise InvalidDimensionsError(
                f"Mosaic grid is {state.grid_width}x{state.grid_height}; configure columns and rows first",
                operation="append",
            )

        # Stitch the accumulator with the new tile and replace it; never mutate in place.
        current_row = stitch_horizontal(state.current_row, image)
        count = state.images_accumulated + 1
        rows: List[PixelBuffer] = state.completed_rows

        if count % state.grid_width == 0:
            rows = rows + [current_row]
            current_row = PixelBuffer.empty()
            logger.debug("Mosaic row %s complete (%s tile(s) so far)", len(rows), count)

        if count % state.tiles_per_mosaic == 0:
            mosaic = self._fold_rows(rows)
            state.latest_mosaic = mosaic
            state.clear_accumulation()
            state.complete = True
            state.mosaics_completed += 1
            logger.debug(
                "Mosaic %s complete: %sx%s px from %s rows",
                state.mosaics_completed,
                mosaic.width,
                mosaic.height,
                len(rows),
            )
            return

        state.current_row = current_row
        state.completed_rows = rows
        state.images_accumulated = count

    @staticmethod
    def _fold_rows(rows: List[PixelBuffer]) -> PixelBuffer:
        mosaic = PixelBuffer.empty()
        for row in rows:
            mosaic = stitch_vertical(mosaic, row)
        return mosaic

    # --- results ---

    def latest_mosaic(self) -> PixelBuffer:
        """Return the most recently completed mosaic.

        Raises:
            NoMosaicAvailableError: If no grid has completed since creation or
                the last `reset()`.
        """
        if self.state.latest_mosaic is None:
            raise NoMosaicAvailableError("No collage available yet", operation="latest_mosaic")
        return self.state.latest_mosaic

    def is_complete(self) -> bool:
        return self.state.complete

    def reset(self) -> None:
        """Discard partial rows, the latest mosaic and the mosaic count; grid size is kept."""
        self.state.clear_accumulation()
        self.state.latest_mosaic = None
        self.state.complete = False
        self.state.mosaics_completed = 0

    # --- inspection ---

    @property
    def images_accumulated(self) -> int:
        return self.state.images_accumulated

    @property
    def rows_completed(self) -> int:
        return len(self.state.completed_rows)

    @property
    def phase(self) -> MosaicPhase:
        return self.state.phase

    def snapshot(self) -> MosaicState:
        """Copy of the internal state for diagnostics."""
        return self.state.copy()
