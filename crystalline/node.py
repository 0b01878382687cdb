import enum
import typing


class Phase (enum.IntEnum):

	"""
	Whether a node currently stands for a sounding or a released note.
	"""

	OFF = 0
	ON = 1


class Node:

	"""
	A musical event descriptor held by a lattice.

	``pitch``, ``inter_event_delay`` (milliseconds) and ``id`` are fixed once
	the node exists; ``id`` is ``None`` for a node built outside a lattice.
	``phase`` is runtime state that only the owning lattice flips, so every
	attribute is read-only from the outside.
	"""

	def __init__ (self, phase: Phase, pitch: int, inter_event_delay: int, id: typing.Optional[int] = None) -> None:

		"""Normalise the phase and reject negative delays."""

		if inter_event_delay < 0:
			raise ValueError("Inter-event delay cannot be negative")

		self._phase = Phase(phase)
		self._pitch = pitch
		self._inter_event_delay = inter_event_delay
		self._id = id


	def __repr__ (self) -> str:

		return f"Node(phase={self._phase.name}, pitch={self._pitch}, inter_event_delay={self._inter_event_delay}, id={self._id})"


	@property
	def phase (self) -> Phase:

		"""Whether the node is currently sounding."""

		return self._phase


	@property
	def pitch (self) -> int:

		"""MIDI note number."""

		return self._pitch


	@property
	def inter_event_delay (self) -> int:

		"""Wait after this node's event, in milliseconds."""

		return self._inter_event_delay


	@property
	def id (self) -> typing.Optional[int]:

		"""Position in the owning lattice."""

		return self._id


	@property
	def delay_seconds (self) -> float:

		"""The inter-event delay converted to seconds."""

		return self._inter_event_delay / 1000.0


	def equivalent_to (self, other: "Node") -> bool:

		"""
		Return True when both nodes describe the same event.

		Only phase and pitch are compared; two nodes with different delays are
		still equivalent, so the first delay registered for a pitch/phase wins.
		"""

		return self._phase == other.phase and self._pitch == other.pitch
