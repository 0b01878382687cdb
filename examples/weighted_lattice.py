import asyncio
import logging
import random

import crystalline

logging.basicConfig(level=logging.INFO)

# Repeating a pitch in a preset re-wires it against every earlier node, so the
# walk visits it more often.  Here G4 (67) is registered three times.
crystalline.register_preset("heavy_g", [60, 64, 67, 69, 67, 72, 67])

lattice = crystalline.build_lattice(crystalline.get_preset("heavy_g").pitches, rng=random.Random(1))

for node in lattice.nodes:
	logging.info(f"Node {node.id}: pitch {node.pitch}, {node.inter_event_delay} ms, edges {list(lattice.edges_of(node.id))}")

# Render 128 steps to a MIDI file without waiting for real time.
player = crystalline.Player(seed=1)
player.select_preset("heavy_g")

results = asyncio.run(player.render(128, filename="heavy_g.mid"))

visits = sum(1 for result in results if result.pitch == 67)
logging.info(f"G4 played on {visits} of {len(results)} steps")
