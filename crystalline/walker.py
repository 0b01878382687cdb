import dataclasses
import enum
import logging
import random
import typing

import crystalline.constants
import crystalline.lattice
import crystalline.node


logger = logging.getLogger(__name__)


class EventKind (enum.Enum):

	"""
	Kinds of record a walk step can hand to a sink.
	"""

	NOTE_ON = "note_on"
	NOTE_OFF = "note_off"
	WALK_TERMINATED = "walk_terminated"


@dataclasses.dataclass(frozen=True)
class NoteEvent:

	"""
	A note-on or note-off produced by one walk step.

	``duration`` (seconds) is only set for note-ons and equals the node's
	inter-event delay.  ``timestamp`` is the caller's logical clock.
	"""

	kind: EventKind
	pitch: int
	velocity: float
	timestamp: float
	duration: typing.Optional[float] = None


@dataclasses.dataclass(frozen=True)
class WalkTerminated:

	"""
	Signal that the walk stands on a node with no outgoing edges.
	"""

	at_node_id: int
	kind: EventKind = dataclasses.field(default=EventKind.WALK_TERMINATED, init=False)


@dataclasses.dataclass(frozen=True)
class StepResult:

	"""
	Everything one walk step produced.
	"""

	node_id: int
	phase: crystalline.node.Phase
	event: NoteEvent
	wait_seconds: float
	terminated: typing.Optional[WalkTerminated] = None

	@property
	def pitch (self) -> int:

		"""Pitch of the node the walk now stands on."""

		return self.event.pitch


	@property
	def velocity (self) -> float:

		"""Velocity of the emitted event (0.0 for note-offs)."""

		return self.event.velocity


class Walker:

	"""
	Random walk over a lattice, one step per call.

	The walker does no timing of its own.  A driver calls ``step()`` and then
	waits ``wait_seconds`` before calling it again.

	Example:
		```python
		lattice = crystalline.lattice.build_lattice([60, 64, 67, 69], rng=random.Random(1))
		walker = Walker(lattice, rng=random.Random(2))

		result = walker.step(0.0)
		result.event          # NoteEvent(kind=EventKind.NOTE_ON, pitch=..., ...)
		result.wait_seconds   # 0.3 - 1.0
		```
	"""

	def __init__ (
		self,
		lattice: crystalline.lattice.Lattice,
		rng: typing.Optional[random.Random] = None,
		velocity: float = crystalline.constants.DEFAULT_VELOCITY
	) -> None:

		"""
		Initialize the walker.

		Parameters:
			lattice: The lattice to walk. Its ``active_node_id`` is the walk position.
			rng: Random source for edge choice. Pass a seeded ``random.Random``
				for repeatable walks.
			velocity: Note-on velocity in [0, 1].
		"""

		self.lattice = lattice
		self.rng = rng or random.Random()
		self.velocity = velocity
		self.cycle_start_time: typing.Optional[float] = None
		self.longest_duration_so_far = crystalline.constants.TIME_QUANTIZATION_STEP_MS / 1000.0
		self.step_count = 0


	@property
	def velocity (self) -> float:

		"""Note-on velocity in [0, 1]."""

		return self._velocity


	@velocity.setter
	def velocity (self, value: float) -> None:

		if not 0.0 <= value <= 1.0:
			raise ValueError("Velocity must be between 0 and 1")

		self._velocity = float(value)


	def step (self, cycle_start_time: float, rng: typing.Optional[random.Random] = None) -> StepResult:

		"""
		Move to a random neighbour and describe the event to play.

		When the current node has outgoing edges, one entry of its adjacency
		list is chosen uniformly (repeated destinations are proportionally more
		likely).  The node left behind is released and the destination becomes
		a note-on.  A node without outgoing edges is played as it stands.

		Parameters:
			cycle_start_time: Logical time of this step. Must not go backwards.
			rng: Optional random source overriding the walker's own for this step.

		Returns:
			The step result. ``terminated`` is set when the walk cannot move
			any further from the node it now stands on.
		"""

		if len(self.lattice) == 0:
			raise crystalline.lattice.EmptyGraphError("Cannot walk a lattice with no nodes")

		if self.cycle_start_time is not None and cycle_start_time < self.cycle_start_time:
			raise ValueError(f"Cycle start time went backwards ({cycle_start_time} < {self.cycle_start_time})")

		self.cycle_start_time = cycle_start_time
		rng = rng or self.rng

		assert self.lattice.active_node_id is not None, "A non-empty lattice always has an active node"

		destinations = self.lattice.edges_of(self.lattice.active_node_id)

		if destinations:
			self.lattice.traverse_to(rng.choice(destinations))

		node_id = self.lattice.active_node_id
		node = self.lattice.node(node_id)

		terminated: typing.Optional[WalkTerminated] = None

		if self.lattice.is_terminal(node_id):
			terminated = WalkTerminated(at_node_id=node_id)

		delay_seconds = node.delay_seconds

		if delay_seconds > self.longest_duration_so_far:
			self.longest_duration_so_far = delay_seconds

		if node.phase == crystalline.node.Phase.ON:
			event = NoteEvent(
				kind = EventKind.NOTE_ON,
				pitch = node.pitch,
				velocity = self.velocity,
				timestamp = cycle_start_time,
				duration = delay_seconds
			)

		else:
			event = NoteEvent(
				kind = EventKind.NOTE_OFF,
				pitch = node.pitch,
				velocity = 0.0,
				timestamp = cycle_start_time
			)

		self.step_count += 1

		logger.debug(f"Step {self.step_count}: node {node_id} {event.kind.value} pitch {node.pitch}")

		return StepResult(
			node_id = node_id,
			phase = node.phase,
			event = event,
			wait_seconds = max(delay_seconds, crystalline.constants.MIN_INTERVAL_SECONDS),
			terminated = terminated
		)
