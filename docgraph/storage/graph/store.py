"""
Graph store seam used by the writer and the retriever.
"""

from typing import Any, Dict, List, Protocol, runtime_checkable

from docgraph.storage.graph.cypher import CypherQuery


@runtime_checkable
class GraphStore(Protocol):
    """Executes named Cypher queries and returns rows as dicts."""

    async def run(self, query: CypherQuery) -> List[Dict[str, Any]]:
        ...
