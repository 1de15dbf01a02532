"""Rich terminal display — an in-memory panel rendered as a colored grid.

Stands in for the physical device when running without hardware
(``casedeck run --console`` and ``casedeck replay``).  Every key keeps
its last written buffer; ``render()`` turns the panel into a Rich
``Panel`` whose cells are painted with each key's average color.

Color scheme
------------
- cell background : average RGB of the key buffer
- cell label      : ticket number from an optional ``BoardSnapshot``
- dim dot         : blank key
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from PIL import Image
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from casedeck.display.base import check_key, check_key_buffer, split_panel_buffer
from casedeck.models.geometry import PanelGeometry

if TYPE_CHECKING:
    from casedeck.models.board import BoardSnapshot


class ConsoleDisplay:
    """In-memory display with a Rich rendition.

    Parameters
    ----------
    geometry:
        Panel layout.  Defaults to the 8x4 Stream Deck XL layout.
    console:
        Rich Console used by ``print()``.  A new one is created if not
        provided.
    """

    def __init__(
        self, geometry: PanelGeometry | None = None, console: Console | None = None
    ) -> None:
        self._geometry = geometry or PanelGeometry()
        self.console = console or Console()
        self._cells: list[bytes | None] = [None] * self._geometry.key_count
        self._writes = 0

    @property
    def geometry(self) -> PanelGeometry:
        return self._geometry

    @property
    def write_count(self) -> int:
        """Total writes and clears applied so far."""
        return self._writes

    # ------------------------------------------------------------------
    # Display protocol
    # ------------------------------------------------------------------

    async def write(self, key: int, buffer: bytes) -> None:
        check_key_buffer(self._geometry, key, buffer)
        self._cells[key] = buffer
        self._writes += 1

    async def clear(self, key: int) -> None:
        check_key(self._geometry, key)
        self._cells[key] = None
        self._writes += 1

    async def write_all(self, panel_buffer: bytes) -> None:
        for key, tile in enumerate(split_panel_buffer(self._geometry, panel_buffer)):
            await self.write(key, tile)

    async def clear_all(self) -> None:
        for key in range(self._geometry.key_count):
            await self.clear(key)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def cell(self, key: int) -> bytes | None:
        """The buffer currently shown on *key* (``None`` when blank)."""
        return self._cells[key]

    def cell_color(self, key: int) -> tuple[int, int, int] | None:
        """Average RGB color of *key*, or ``None`` when blank."""
        buffer = self._cells[key]
        if buffer is None:
            return None
        size = self._geometry.key_size
        image = Image.frombytes("RGB", (size, size), buffer)
        r, g, b = image.resize((1, 1), Image.Resampling.BOX).getpixel((0, 0))
        return r, g, b

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self, snapshot: BoardSnapshot | None = None, *, title: str = "casedeck") -> Panel:
        """Render the panel as a Rich Panel containing one table cell per key."""
        labels: dict[int, str] = {}
        if snapshot is not None:
            labels = {view.key: view.ticket for view in snapshot.slots}

        table = Table(show_header=False, show_lines=True, expand=False, pad_edge=False)
        for _ in range(self._geometry.columns):
            table.add_column(width=10, justify="center")

        for row in range(self._geometry.rows):
            cells: list[Text] = []
            for column in range(self._geometry.columns):
                key = self._geometry.key_at(row, column)
                color = self.cell_color(key)
                label = labels.get(key, "")
                if color is None:
                    cells.append(Text("·", style="dim"))
                else:
                    r, g, b = color
                    cells.append(Text(f"{label[:10]:^10}", style=f"bold white on rgb({r},{g},{b})"))
            table.add_row(*cells)

        subtitle = ""
        if snapshot is not None:
            subtitle = f"{snapshot.occupied}/{snapshot.capacity} active"
        return Panel(table, title=f"[bold]{title}[/bold]", subtitle=subtitle, border_style="blue")

    def print(self, snapshot: BoardSnapshot | None = None) -> None:
        self.console.print(self.render(snapshot))
