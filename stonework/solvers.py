"""
Shortest-path backends for `GridGraph`.

A solver takes a built graph and two node ids and returns the ordered node ids
of a minimum-weight path. Two backends are provided:

- `CSGraphSolver` (default) runs `scipy.sparse.csgraph.dijkstra` on the sparse
  adjacency matrix. It is the practical choice for images with millions of
  pixels. A timeout abandons the solve on a daemon thread; scipy itself
  cannot be interrupted, so the thread runs to completion in the background.
- `NetworkXSolver` uses the cached `GridGraph.nx_graph` view and
  `networkx.shortest_path`. Its timeout is checked inside the weight callback,
  so an expired solve actually stops.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

import networkx as nx
import numpy as np
from scipy.sparse import csgraph

from .bwgraph import GridGraph
from .errors import NoPathFound, OutOfBounds, PathTimeout

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class ShortestPathSolver:
    """
    Base class for shortest-path backends.

    Subclasses implement `_solve(graph, source, target)`; `shortest_path`
    handles argument checks and the trivial source == target case.
    """

    name = "base"

    def __init__(self, timeout: Optional[float] = None):
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be positive")
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"{type(self).__name__}(timeout={self.timeout})"

    def shortest_path(self, graph: GridGraph, source: int, target: int) -> np.ndarray:
        """
        Ordered node ids from `source` to `target` (both included).

        Raises:
            OutOfBounds: a node id is not in the graph.
            NoPathFound: the nodes are not connected.
            PathTimeout: the solve exceeded `timeout` seconds.
        """
        source, target = int(source), int(target)
        for nid in (source, target):
            if not 0 <= nid < graph.num_nodes:
                raise OutOfBounds(f"Node id {nid} outside graph of {graph.num_nodes} nodes")
        if source == target:
            return np.array([source], dtype=np.int64)

        t0 = time.perf_counter()
        path = self._solve(graph, source, target)
        logger.debug(
            "%s: path %d -> %d with %d nodes in %.3fs",
            self.name,
            source,
            target,
            path.size,
            time.perf_counter() - t0,
        )
        return path

    def _solve(self, graph: GridGraph, source: int, target: int) -> np.ndarray:  # pragma: no cover - abstract
        raise NotImplementedError


class CSGraphSolver(ShortestPathSolver):
    """
    Dijkstra from `scipy.sparse.csgraph` on the graph's CSR matrix.

    With a timeout the solve runs on a daemon thread. scipy cannot be
    interrupted, so an expired solve keeps running in the background until it
    finishes, but it never holds up interpreter exit.
    """

    name = "scipy"

    def _solve(self, graph: GridGraph, source: int, target: int) -> np.ndarray:
        if self.timeout is None:
            return _csgraph_path(graph, source, target)

        outcome = {}

        def work():
            try:
                outcome["path"] = _csgraph_path(graph, source, target)
            except Exception as e:  # re-raised on the calling thread
                outcome["error"] = e

        worker = threading.Thread(target=work, name="stonework-dijkstra", daemon=True)
        worker.start()
        worker.join(self.timeout)
        if worker.is_alive():
            raise PathTimeout(f"Shortest path {source} -> {target} exceeded {self.timeout}s")
        if "error" in outcome:
            raise outcome["error"]
        return outcome["path"]


class NetworkXSolver(ShortestPathSolver):
    """Dijkstra from networkx, with a cooperative timeout."""

    name = "networkx"

    def _solve(self, graph: GridGraph, source: int, target: int) -> np.ndarray:
        G = graph.nx_graph
        deadline = None if self.timeout is None else time.monotonic() + self.timeout

        def weight(u, v, data):
            if deadline is not None and time.monotonic() > deadline:
                raise PathTimeout(f"Shortest path {source} -> {target} exceeded {self.timeout}s")
            return data["weight"]

        try:
            nodes = nx.shortest_path(G, source, target, weight=weight, method="dijkstra")
        except nx.NetworkXNoPath as e:
            raise NoPathFound(source, target) from e
        return np.asarray(nodes, dtype=np.int64)


_SOLVERS = {
    CSGraphSolver.name: CSGraphSolver,
    NetworkXSolver.name: NetworkXSolver,
}


def available_solvers():
    return tuple(_SOLVERS)


def get_solver(name: str = "scipy", timeout: Optional[float] = None) -> ShortestPathSolver:
    """Instantiate a solver by name ("scipy" or "networkx")."""
    try:
        cls = _SOLVERS[str(name).lower()]
    except KeyError as e:
        raise ValueError(
            f"Unknown solver {name!r}; expected one of {', '.join(available_solvers())}"
        ) from e
    return cls(timeout=timeout)


def _csgraph_path(graph: GridGraph, source: int, target: int) -> np.ndarray:
    dist, pred = csgraph.dijkstra(
        graph.csgraph,
        directed=False,
        indices=source,
        return_predecessors=True,
    )
    if not np.isfinite(dist[target]):
        raise NoPathFound(source, target)

    path = [target]
    node = target
    while node != source:
        node = int(pred[node])
        if node < 0:  # pragma: no cover - guarded by the distance check
            raise NoPathFound(source, target)
        path.append(node)
    path.reverse()
    return np.asarray(path, dtype=np.int64)
