import logging
import random
import typing

import crystalline.constants
import crystalline.node


logger = logging.getLogger(__name__)


class LatticeError (Exception):

	"""Base class for lattice misuse."""


class EmptyGraphError (LatticeError):

	"""Raised when a walk is attempted on a lattice with no nodes."""


class OutOfRangeError (LatticeError, IndexError):

	"""Raised when a node id does not belong to the lattice."""


class Lattice:

	"""
	A deduplicating directed graph of musical events.

	Nodes are appended in registration order and never removed.  Every
	registration after the first wires reciprocal edges between the resolved
	node and every node with a lower id, so a lattice seeded with distinct
	pitches is a complete digraph without self-loops.

	Adjacency lists may repeat a destination: registering the same pitch and
	phase again re-adds its edges, which makes transitions to and from that
	node more likely during the walk.

	``active_node_id`` is the single walk pointer.  While seeding it tracks the
	latest registration; during playback it is the node the walk stands on.
	"""

	def __init__ (self) -> None:

		"""
		Initialize an empty lattice.
		"""

		self._nodes: typing.List[crystalline.node.Node] = []
		self._edges: typing.List[typing.List[int]] = []
		self._active_node_id: typing.Optional[int] = None
		self._edge_count = 0


	def __len__ (self) -> int:

		return len(self._nodes)


	@property
	def active_node_id (self) -> typing.Optional[int]:

		"""The node the walk stands on, or the latest registration while seeding."""

		return self._active_node_id


	@property
	def edge_count (self) -> int:

		"""Total number of directed edges, duplicates included."""

		return self._edge_count


	@property
	def nodes (self) -> typing.Tuple[crystalline.node.Node, ...]:

		"""Registered nodes in id order."""

		return tuple(self._nodes)


	@property
	def edges (self) -> typing.Tuple[typing.Tuple[int, ...], ...]:

		"""Adjacency lists in id order, one per node."""

		return tuple(tuple(destinations) for destinations in self._edges)


	def node (self, node_id: int) -> crystalline.node.Node:

		"""
		Return the node with the given id.
		"""

		self._check_id(node_id)

		return self._nodes[node_id]


	def edges_of (self, node_id: int) -> typing.Tuple[int, ...]:

		"""
		Return the destinations reachable from a node, duplicates included.
		"""

		self._check_id(node_id)

		return tuple(self._edges[node_id])


	def is_terminal (self, node_id: int) -> bool:

		"""
		Return True when a node has no outgoing edges.
		"""

		self._check_id(node_id)

		return not self._edges[node_id]


	def find_node (self, candidate: crystalline.node.Node) -> typing.Optional[int]:

		"""
		Return the id of the first node equivalent to the candidate, if any.
		"""

		for existing in self._nodes:
			if candidate.equivalent_to(existing):
				return existing.id

		return None


	def register_node (self, phase: crystalline.node.Phase, pitch: int, inter_event_delay: int) -> int:

		"""
		Add a node (or find its equivalent) and wire it into the lattice.

		An equivalent node keeps its original delay; the new one is discarded.
		Wiring runs on every call except the very first, whether or not a new
		node was created.

		Returns:
			The id of the created or reused node, which also becomes the active node.
		"""

		candidate = crystalline.node.Node(phase=phase, pitch=pitch, inter_event_delay=inter_event_delay)
		node_id = self.find_node(candidate)

		if node_id is None:
			node_id = len(self._nodes)
			self._nodes.append(crystalline.node.Node(phase=phase, pitch=pitch, inter_event_delay=inter_event_delay, id=node_id))
			self._edges.append([])
			logger.debug(f"Registered node {node_id} (pitch {pitch}, {inter_event_delay} ms)")

		else:
			logger.debug(f"Pitch {pitch} resolved to existing node {node_id}")

		if self._active_node_id is not None:
			self._wire(node_id)

		self._active_node_id = node_id

		return node_id


	def _wire (self, node_id: int) -> None:

		"""Add an edge pair between a node and every node with a lower id."""

		for other_id in range(node_id - 1, -1, -1):
			self._add_edge(other_id, node_id)
			self._add_edge(node_id, other_id)


	def _add_edge (self, source: int, target: int) -> None:

		self._edges[source].append(target)
		self._edge_count += 1


	def traverse_to (self, node_id: int) -> None:

		"""
		Move the walk to a node, releasing the node it leaves.

		The node being left becomes ``Phase.OFF`` and the target becomes
		``Phase.ON``.
		"""

		self._check_id(node_id)

		if self._active_node_id is not None:
			self._nodes[self._active_node_id]._phase = crystalline.node.Phase.OFF

		self._active_node_id = node_id
		self._nodes[node_id]._phase = crystalline.node.Phase.ON


	def restart_walk (self, node_id: int) -> None:

		"""
		Place the walk pointer on a node without changing any phase.
		"""

		self._check_id(node_id)

		self._active_node_id = node_id


	def pitch_range (self) -> typing.Optional[typing.Tuple[int, int]]:

		"""
		Return the lowest and highest registered pitch, or None when empty.
		"""

		if not self._nodes:
			return None

		pitches = [node.pitch for node in self._nodes]

		return min(pitches), max(pitches)


	def _check_id (self, node_id: int) -> None:

		if not 0 <= node_id < len(self._nodes):
			raise OutOfRangeError(f"Node id {node_id} is not in the lattice ({len(self._nodes)} nodes)")


def build_lattice (
	pitches: typing.Sequence[int],
	rng: typing.Optional[random.Random] = None,
	min_delay_ms: int = crystalline.constants.MIN_DELAY_MS,
	max_delay_ms: int = crystalline.constants.MAX_DELAY_MS
) -> Lattice:

	"""Seed a lattice from an ordered pitch list.

	Every pitch is registered in order as a released (``Phase.OFF``) node with a
	random delay drawn from ``[min_delay_ms, max_delay_ms)``.

	Parameters:
		pitches: MIDI note numbers in registration order. May be empty.
		rng: Random source for the delays. Pass a seeded ``random.Random``
			for repeatable lattices.
		min_delay_ms: Lowest delay (inclusive).
		max_delay_ms: Highest delay (exclusive). Equal bounds give every node
			the same delay.

	Returns:
		The seeded lattice, its active node being the last one registered.
	"""

	if min_delay_ms < 0 or max_delay_ms < 0:
		raise ValueError("Delay bounds cannot be negative")

	if min_delay_ms > max_delay_ms:
		raise ValueError("min_delay_ms cannot exceed max_delay_ms")

	rng = rng or random.Random()
	lattice = Lattice()

	for pitch in pitches:

		if min_delay_ms == max_delay_ms:
			delay = min_delay_ms

		else:
			delay = rng.randrange(min_delay_ms, max_delay_ms)

		lattice.register_node(crystalline.node.Phase.OFF, pitch, delay)

	logger.info(f"Built lattice: {len(lattice)} nodes, {lattice.edge_count} edges")

	return lattice
