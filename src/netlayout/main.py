"""
Demo Entry Point
================
Lays out a small random tree and logs the stabilization progress.

Usage:
    $ python -m netlayout [number_of_nodes]
"""
from __future__ import annotations

import logging
import sys

import numpy as np

from netlayout.logging_config import setup_logging
from netlayout.network import Network

logger = logging.getLogger(__name__)


def build_tree(n: int, seed: int = 1) -> tuple[list[dict], list[dict]]:
    """Random tree: every node after the first hangs off an earlier one."""
    rng = np.random.default_rng(seed)
    nodes = [{"id": i, "label": f"Node {i}"} for i in range(n)]
    edges = [{"from": int(rng.integers(0, i)), "to": i} for i in range(1, n)]
    return nodes, edges


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    n = int(argv[0]) if argv else 25

    # 1. Setup Logging
    setup_logging(level=logging.INFO)

    # 2. Build the network without the automatic run, so the listeners are attached first
    network = Network(options={
        "layout": {"randomSeed": 7},
        "physics": {"stabilization": {"enabled": False, "updateInterval": 25}},
    })
    network.on("stabilizationProgress",
               lambda p: logger.info(f"Stabilizing... {p['iterations']}/{p['total']}"))
    network.on("stabilized",
               lambda r: logger.info(f"Done after {r['iterations']} iterations (converged={r['converged']})."))

    nodes, edges = build_tree(n)
    network.set_data(nodes, edges)

    # 3. Run the simulation
    network.stabilize()

    fit = network.fit(width=800, height=600)
    logger.info(f"Fit: centre=({fit.center[0]:.1f}, {fit.center[1]:.1f}), zoom={fit.zoom_level:.3f}")
    for node_id, position in network.get_positions().items():
        print(f"{node_id:>4}  x={position['x']:9.2f}  y={position['y']:9.2f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
