"""
FalkorDB Client
===============

Async client for the FalkorDB graph database.

FalkorDB speaks the Redis protocol and runs Cypher. The falkordb driver is
synchronous, so every call runs in the default thread pool executor.
Connection and timeout errors are retried with the client's RetryPolicy;
any failure that survives the retries surfaces as GraphStoreError.
"""

import asyncio
from typing import Any, Dict, List, Optional

import structlog
from falkordb import FalkorDB, Graph
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from docgraph.core.exceptions import GraphStoreError
from docgraph.core.retry import RetryPolicy
from docgraph.storage.graph import cypher as cq
from docgraph.storage.graph.config import FalkorDBConfig
from docgraph.storage.graph.cypher import CypherQuery

log = structlog.get_logger()

TRANSIENT_ERRORS = (RedisConnectionError, RedisTimeoutError, ConnectionError, TimeoutError)


class FalkorDBClient:
    """
    Async client for FalkorDB.

    Example:
        client = FalkorDBClient(FalkorDBConfig(graph_name="docgraph_dev"))
        await client.connect()

        rows = await client.query(
            "MATCH (c:Chunk {id: $id}) RETURN c.text AS text",
            {"id": "5d41402abc4b2a76b9719d911017c592"},
        )

        await client.close()
    """

    def __init__(self, config: Optional[FalkorDBConfig] = None, retry_policy: Optional[RetryPolicy] = None):
        self.config = config or FalkorDBConfig()
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.config.retry_attempts,
            base_delay=0.5,
            retry_on=TRANSIENT_ERRORS,
        )
        self._db: Optional[FalkorDB] = None
        self._graph: Optional[Graph] = None
        self._connected = False

        log.info(
            f"FalkorDBClient initialized - "
            f"host={self.config.host}:{self.config.port}, "
            f"graph={self.config.graph_name}"
        )

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self):
        """Establish connection to FalkorDB."""
        if self._connected:
            log.debug("Already connected to FalkorDB")
            return

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._connect_sync)
        except Exception as e:
            raise GraphStoreError(
                f"Cannot connect to FalkorDB at {self.config.host}:{self.config.port}: {e}"
            ) from e

        log.info(f"Connected to FalkorDB at {self.config.host}:{self.config.port}")

    def _connect_sync(self):
        """Synchronous connection (called in executor)."""
        self._db = FalkorDB(
            host=self.config.host,
            port=self.config.port,
            password=self.config.password,
            socket_timeout=self.config.timeout_ms / 1000,
            max_connections=self.config.max_connections,
        )
        self._graph = self._db.select_graph(self.config.graph_name)
        self._connected = True

    async def close(self):
        """Close connection."""
        if not self._connected:
            return

        # The driver's redis pool owns the sockets; dropping references is enough
        self._connected = False
        self._db = None
        self._graph = None
        log.info("Disconnected from FalkorDB")

    async def query(
        self,
        cypher: str,
        params: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """
        Execute a Cypher query.

        Args:
            cypher: Cypher query string
            params: Query parameters

        Returns:
            List of result records as dicts

        Raises:
            RuntimeError: client not connected
            GraphStoreError: query failed (after retries for transient errors)
        """
        if not self._connected:
            raise RuntimeError("Not connected to FalkorDB. Call connect() first.")

        try:
            return await self.retry_policy.run(self._execute, cypher, params or {})
        except GraphStoreError:
            raise
        except Exception as e:
            raise GraphStoreError(f"Query failed: {e}") from e

    async def run(self, query: CypherQuery) -> List[Dict[str, Any]]:
        """Execute a named query built by docgraph.storage.graph.cypher."""
        log.debug(f"Running {query.name}", params=list(query.params))
        return await self.query(query.text, query.params)

    async def _execute(self, cypher: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._query_sync, cypher, params)

    def _query_sync(self, cypher: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Execute query synchronously (called in executor)."""
        try:
            result = self._graph.query(cypher, params)
        except Exception as e:
            log.error(f"Query failed: {cypher[:100]}... Error: {e}")
            raise

        records = []
        if result.result_set:
            headers = result.header

            for row in result.result_set:
                record = {}
                for i, header in enumerate(headers):
                    # Header entries are [type, alias]
                    col_name = header[1] if len(header) > 1 else f"col_{i}"
                    value = row[i]

                    if hasattr(value, "properties"):
                        record[col_name] = {
                            "properties": value.properties,
                            "labels": getattr(value, "labels", []),
                            "id": getattr(value, "id", None),
                        }
                    else:
                        record[col_name] = value

                records.append(record)

        log.debug(
            f"Query executed: {cypher[:100]}... "
            f"(params={list(params.keys())}) -> {len(records)} records"
        )
        return records

    async def merge_node(self, label: str, key_property: str, key: Any, attrs: Optional[Dict[str, Any]] = None) -> Any:
        """Create or update a node by key; returns the key."""
        rows = await self.run(cq.merge_node(label, key_property, key, attrs))
        return rows[0]["key"] if rows else None

    async def merge_edge(
        self,
        rel_type: str,
        from_node: tuple,
        to_node: tuple,
    ) -> bool:
        """
        Create an edge between two existing nodes if it does not exist.

        Args:
            rel_type: Relationship type
            from_node: (label, key_property, key)
            to_node: (label, key_property, key)

        Returns:
            True when both endpoints exist and the edge is present
        """
        rows = await self.run(cq.merge_edge(rel_type, *from_node, *to_node))
        return bool(rows and rows[0].get("linked"))

    async def health_check(self) -> bool:
        """
        Check if FalkorDB is healthy and reachable.

        Returns:
            True if healthy, False otherwise
        """
        try:
            if not self._connected:
                await self.connect()
            await self.query("RETURN 1 AS ok")
            return True
        except Exception as e:
            log.error(f"FalkorDB health check failed: {e}")
            return False
