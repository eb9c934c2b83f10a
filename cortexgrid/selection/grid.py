"""Row-major grid navigation with wrap-around."""

from cortexgrid.core.events import TiltDirection


class GridNavigator:
    """Moves a focus index one cell at a time on a row-major grid.

    Left and right walk the cells linearly, so moving right from the end of a
    row lands on the start of the next row and moving right from the last
    cell wraps to the first. Up and down stay in the same column and wrap
    from the top row to the bottom one. The last row may be incomplete.

    Example:
        >>> grid = GridNavigator(cell_count=9, columns=3)
        >>> grid.move(2, TiltDirection.RIGHT)
        3
        >>> grid.move(8, TiltDirection.RIGHT)
        0
        >>> grid.move(1, TiltDirection.UP)
        7
    """

    def __init__(self, cell_count: int, columns: int) -> None:
        if cell_count < 1:
            raise ValueError(f"cell_count must be at least 1, got {cell_count}")
        if columns < 1:
            raise ValueError(f"columns must be at least 1, got {columns}")
        self._cell_count = cell_count
        self._columns = columns

    @property
    def cell_count(self) -> int:
        return self._cell_count

    @property
    def columns(self) -> int:
        return self._columns

    @property
    def rows(self) -> int:
        return -(-self._cell_count // self._columns)

    def position(self, index: int) -> tuple:
        """``(row, column)`` of a cell."""
        return divmod(index, self._columns)

    def _column_indices(self, column: int) -> list:
        return list(range(column, self._cell_count, self._columns))

    def move(self, index: int, direction: TiltDirection) -> int:
        """Return the index reached by moving one cell from ``index``.

        Raises:
            IndexError: If ``index`` is not a cell of this grid.
        """
        if not 0 <= index < self._cell_count:
            raise IndexError(f"Cell {index} is outside a grid of {self._cell_count} cells")

        if direction == TiltDirection.RIGHT:
            return (index + 1) % self._cell_count
        if direction == TiltDirection.LEFT:
            return (index - 1) % self._cell_count

        column_cells = self._column_indices(index % self._columns)
        position = column_cells.index(index)
        step = 1 if direction == TiltDirection.DOWN else -1
        return column_cells[(position + step) % len(column_cells)]
