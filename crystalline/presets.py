"""
Crystal-structure presets used to seed a lattice.

Each preset is a named, ordered pitch list whose length is the number of
vertices of the structure it is named after.  The built-ins are all drawn
from C major, rooted on middle C:

- ``TETRAHEDRON`` - 4 vertices: C E G A
- ``PYRAMID`` - 5 vertices: C E F G A
- ``CUBOID`` - 8 vertices: C D E F G A B C

Add your own with ``register_preset()``::

    crystalline.presets.register_preset("octahedron", [57, 60, 62, 64, 67, 69])
"""

import dataclasses
import typing

import crystalline.constants


@dataclasses.dataclass(frozen=True)
class Preset:

	"""A named, fixed ordered pitch list."""

	name: str
	vertices: int
	pitches: typing.Tuple[int, ...]

	def __post_init__ (self) -> None:

		"""Check the vertex count and pitch range."""

		if self.vertices != len(self.pitches):
			raise ValueError(f"Preset {self.name!r} declares {self.vertices} vertices but has {len(self.pitches)} pitches")

		for pitch in self.pitches:
			if not crystalline.constants.MIN_MIDI_NOTE <= pitch <= crystalline.constants.MAX_MIDI_NOTE:
				raise ValueError(f"Preset {self.name!r} pitch {pitch} is outside the MIDI range")


TETRAHEDRON = Preset(name="TETRAHEDRON", vertices=4, pitches=(60, 64, 67, 69))
PYRAMID = Preset(name="PYRAMID", vertices=5, pitches=(60, 64, 65, 67, 69))
CUBOID = Preset(name="CUBOID", vertices=8, pitches=(60, 62, 64, 65, 67, 69, 71, 72))


PRESETS: typing.Dict[str, Preset] = {
	preset.name: preset for preset in (TETRAHEDRON, PYRAMID, CUBOID)
}


def get_preset (name: str) -> Preset:

	"""
	Return a preset by name (case-insensitive).
	"""

	key = name.upper()

	if key not in PRESETS:
		raise ValueError(f"Unknown preset '{name}'. Available: {preset_names()}")

	return PRESETS[key]


def preset_names () -> typing.List[str]:

	"""Names of all registered presets, in registration order."""

	return list(PRESETS)


def register_preset (name: str, pitches: typing.Sequence[int]) -> Preset:

	"""
	Register a custom preset, replacing any preset with the same name.

	Parameters:
		name: Preset name. Stored upper-case; lookups ignore case.
		pitches: MIDI note numbers in registration order. An empty list is
			accepted and seeds an empty lattice.

	Returns:
		The registered preset.
	"""

	if not name:
		raise ValueError("Preset name cannot be empty")

	preset = Preset(name=name.upper(), vertices=len(pitches), pitches=tuple(pitches))
	PRESETS[preset.name] = preset

	return preset
