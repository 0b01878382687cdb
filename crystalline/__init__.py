"""
Crystalline - endless Markov walks over small musical lattices.

A preset (an ordered list of pitches named after a crystal structure) seeds
a lattice: every pitch becomes a node and every node is linked in both
directions to every node registered before it.  A walker then hops along
randomly chosen edges, one step at a time.  Each step turns the node it
lands on into a note-on and releases the node it left; every node carries
its own random delay, which sets how long to wait before the next step.

What's in the box:

- **Lattice** - deduplicating node registration, reciprocal edge wiring,
  repeated registrations as transition weighting.
- **Walker** - one Markov step per call, seedable randomness, a hard
  10 ms floor on step intervals, and an explicit signal when a walk
  reaches a node with nowhere to go.
- **Player** - an asyncio loop that sends the walk to a MIDI port, releases
  notes after their duration, pauses and resumes, switches presets on the
  fly, records to a MIDI file, or renders offline without waiting.
- **Extras** - a live terminal status line, an OSC bridge for visuals and
  remote control, and a YAML-configured command line (``python -m crystalline``).

Minimal example:

    ```python
    import asyncio
    import crystalline

    player = crystalline.Player(seed=7)
    player.select_preset("tetrahedron")

    asyncio.run(player.play())
    ```

Package-level exports: ``Lattice``, ``Walker``, ``Player``, ``Phase``,
``build_lattice``, ``get_preset``, ``register_preset``.
"""

import crystalline.lattice
import crystalline.node
import crystalline.player
import crystalline.presets
import crystalline.walker


Lattice = crystalline.lattice.Lattice
Walker = crystalline.walker.Walker
Player = crystalline.player.Player
Phase = crystalline.node.Phase
build_lattice = crystalline.lattice.build_lattice
get_preset = crystalline.presets.get_preset
register_preset = crystalline.presets.register_preset
