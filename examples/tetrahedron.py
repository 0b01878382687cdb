import asyncio
import logging

import crystalline

logging.basicConfig(level=logging.INFO)

# Plays until Ctrl+C. Every node links to every other node, so the walk never ends.
player = crystalline.Player(seed=7)

player.select_preset("tetrahedron")
player.display(nodes=True)

try:
	asyncio.run(player.play())
except KeyboardInterrupt:
	pass
