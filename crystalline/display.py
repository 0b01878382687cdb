"""Live terminal status for lattice playback.

Shows a persistent status line on stderr and, optionally, a row of lattice
nodes above it.  Log messages scroll above the display without corrupting it.

Enable it before playing:

```python
player.display()            # status line only
player.display(nodes=True)  # node row + status line
```

While playing the status line looks like::

	Generating from lattice...  TETRAHEDRON  Node 2: G4 on  Edges: 3  Range: C4-A4

and the node row like (each label padded, the active one in brackets)::

	 C4  E4 [G4] A4

The bracketed node is the active one.
"""

import logging
import shutil
import sys
import typing

import crystalline.constants
import crystalline.node

if typing.TYPE_CHECKING:
	from crystalline.player import Player


_MIN_TERMINAL_WIDTH = 40


STATUS_TEXT: typing.Dict[str, str] = {
	"idle": "Select a preset",
	"empty": "Error: No notes in lattice!",
	"playing": "Generating from lattice...",
	"paused": "PAUSED",
	"terminated": "Error: No edges!",
}


class DisplayLogHandler (logging.Handler):

	"""Forwards records to the handlers it displaced, lifting the display out of the way."""

	def __init__ (self, display: "Display", targets: typing.List[logging.Handler]) -> None:

		super().__init__()
		self._display = display
		self._targets = targets

	def emit (self, record: logging.LogRecord) -> None:

		try:
			self._display.clear_line()

			for target in self._targets:
				if record.levelno >= target.level:
					target.handle(record)

			self._display.draw()

		except Exception:
			self.handleError(record)


class Display:

	"""Live-updating terminal view of the player and its lattice.

	Reads only public player and lattice state; never modifies either.
	``update()`` is registered on player events by ``Player.display()``.
	"""

	def __init__ (self, player: "Player", nodes: bool = False) -> None:

		"""
		Parameters:
			player: The ``Player`` whose state is shown.
			nodes: When True, render a row of lattice nodes above the status line.
		"""

		self._player = player
		self._show_nodes = nodes
		self._active: bool = False
		self._handler: typing.Optional[DisplayLogHandler] = None
		self._saved_handlers: typing.List[logging.Handler] = []
		self._last_line: str = ""
		self._node_line: str = ""
		self._rows_drawn: int = 0

	def start (self) -> None:

		"""Route root logging through the display and activate it.

		The root logger's handlers keep formatting and writing every record;
		``stop()`` puts them back.
		"""

		if self._active:
			return

		self._active = True

		root_logger = logging.getLogger()
		self._saved_handlers = list(root_logger.handlers)

		# Without configured handlers, logging would have used lastResort.
		targets = self._saved_handlers or ([logging.lastResort] if logging.lastResort else [])
		self._handler = DisplayLogHandler(self, targets)

		for handler in self._saved_handlers:
			root_logger.removeHandler(handler)

		root_logger.addHandler(self._handler)

	def stop (self) -> None:

		"""Clear the display and restore the original log handlers."""

		if not self._active:
			return

		self.clear_line()
		self._active = False

		root_logger = logging.getLogger()

		if self._handler is not None:
			root_logger.removeHandler(self._handler)

		for handler in self._saved_handlers:
			root_logger.addHandler(handler)

		self._saved_handlers = []
		self._handler = None

	def update (self, *_: typing.Any) -> None:

		"""Rebuild and redraw. Event arguments are ignored; state is read from the player."""

		if not self._active:
			return

		self._last_line = self._format_status()
		self._node_line = self._format_nodes() if self._show_nodes else ""

		self.draw()

	def draw (self) -> None:

		"""Write the node row (if shown) and the status line, replacing the previous ones."""

		if not self._active or not self._last_line:
			return

		self.clear_line()

		if self._node_line:
			sys.stderr.write(f"{self._node_line}\n")

		sys.stderr.write(self._last_line)
		sys.stderr.flush()

		self._rows_drawn = 2 if self._node_line else 1

	def clear_line (self) -> None:

		"""Erase whatever the last draw() wrote."""

		if not self._active:
			return

		# The cursor rests at the end of the status line, the node row just above it.
		sys.stderr.write("\r\033[K")

		if self._rows_drawn == 2:
			sys.stderr.write("\033[A\r\033[K")

		sys.stderr.flush()
		self._rows_drawn = 0

	def _format_status (self) -> str:

		"""Build the status string from the current player state."""

		player = self._player
		parts: typing.List[str] = [STATUS_TEXT[player.status]]

		if player.preset is not None:
			parts.append(player.preset.name)

		lattice = player.lattice

		if lattice is None or len(lattice) == 0:
			return "  ".join(parts)

		active = lattice.active_node_id

		if active is not None and player.last_step is not None:
			node = lattice.node(active)
			phase = "on" if node.phase == crystalline.node.Phase.ON else "off"
			parts.append(f"Node {active}: {crystalline.constants.midi_note_name(node.pitch)} {phase}")
			parts.append(f"Edges: {len(lattice.edges_of(active))}")

		pitch_range = lattice.pitch_range()

		if pitch_range is not None:
			low, high = pitch_range
			parts.append(f"Range: {crystalline.constants.midi_note_name(low)}-{crystalline.constants.midi_note_name(high)}")

		return "  ".join(parts)

	def _format_nodes (self) -> str:

		"""One label per node in id order, the active node in brackets."""

		lattice = self._player.lattice

		if lattice is None or len(lattice) == 0:
			return ""

		term_width = shutil.get_terminal_size(fallback=(80, 24)).columns

		if term_width < _MIN_TERMINAL_WIDTH:
			return ""

		labels: typing.List[str] = []

		for node in lattice.nodes:
			name = crystalline.constants.midi_note_name(node.pitch)
			labels.append(f"[{name}]" if node.id == lattice.active_node_id else f" {name} ")

		return "".join(labels).rstrip()[:term_width]
