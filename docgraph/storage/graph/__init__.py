"""
docgraph Graph Storage
======================

Graph storage on FalkorDB (Cypher-compatible).

Components:
- FalkorDBClient: async FalkorDB client
- FalkorDBConfig: connection settings (for_environment picks the test / prod graph)
- CypherQuery: named, parameterized statement (see cypher.py for builders)
- GraphStore: protocol the writer and retriever depend on

Example:
    from docgraph.storage.graph import FalkorDBClient, FalkorDBConfig

    client = FalkorDBClient(FalkorDBConfig(graph_name="docgraph_dev"))
    await client.connect()
"""

from docgraph.storage.graph.client import FalkorDBClient
from docgraph.storage.graph.config import FalkorDBConfig, graph_name_for
from docgraph.storage.graph.cypher import CypherQuery
from docgraph.storage.graph.store import GraphStore

__all__ = [
    "FalkorDBClient",
    "FalkorDBConfig",
    "graph_name_for",
    "CypherQuery",
    "GraphStore",
]
