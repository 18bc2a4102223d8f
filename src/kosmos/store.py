"""
Persistence collaborator for nodes.

The hierarchy only ever needs two things from storage: fetch a node by id
and save a node. Anything implementing the ``DataStore`` protocol can be
handed to nodes and to the population engine.
"""

from typing import Dict, Iterator, Optional, Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from .node import Node


class DataStore(Protocol):
    """Lookup/save interface used to resolve node references by id."""

    def get(self, node_id: str) -> Optional["Node"]:
        ...

    def save(self, node: "Node") -> None:
        ...


class InMemoryDataStore:
    """
    Dict-backed DataStore.

    Holds strong references, so nodes saved here stay alive even after the
    tree that produced them has been detached.
    """

    def __init__(self):
        self._nodes: Dict[str, "Node"] = {}

    def get(self, node_id: str) -> Optional["Node"]:
        return self._nodes.get(node_id)

    def save(self, node: "Node") -> None:
        self._nodes[node.id] = node

    def remove(self, node_id: str) -> None:
        self._nodes.pop(node_id, None)

    def by_kind(self, kind: str) -> Iterator["Node"]:
        return (n for n in self._nodes.values() if n.kind == kind)

    def __contains__(self, node_id) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self):
        return f"InMemoryDataStore({len(self)} nodes)"
