"""
FalkorDB Configuration
======================

Connection settings for the FalkorDB client.

Usage:
    from docgraph.storage.graph import FalkorDBConfig

    # Defaults (environment variables or built-in values)
    config = FalkorDBConfig()

    # Explicit override
    config = FalkorDBConfig(host="localhost", port=6380, graph_name="docgraph_prod")

    # Graph of an environment ("test" / "prod", DOCGRAPH_ENV when omitted)
    config = FalkorDBConfig.for_environment("prod")

Environment Variables:
    FALKORDB_HOST: Server host (default: localhost)
    FALKORDB_PORT: Server port (default: 6380)
    FALKORDB_GRAPH_NAME: Graph name (default: docgraph_dev)
    FALKORDB_PASSWORD: Password (default: empty)
    FALKORDB_MAX_CONNECTIONS: Connection pool size (default: 10)
    FALKORDB_TIMEOUT_MS: Operation timeout in ms (default: 5000)
    FALKORDB_RETRY_ATTEMPTS: Attempts per query on connection errors (default: 3)
    DOCGRAPH_ENV: Environment used by for_environment() (default: test)
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from docgraph.config.settings import env_int, env_str

# Documents of each environment live in their own graph
GRAPH_NAMES: Dict[str, str] = {
    "test": "docgraph_test",
    "prod": "docgraph_prod",
}


def graph_name_for(environment: Optional[str] = None) -> str:
    """Graph name of an environment; DOCGRAPH_ENV (default "test") when omitted."""
    name = (environment or env_str("DOCGRAPH_ENV", "") or "test").strip().lower()
    if name not in GRAPH_NAMES:
        raise ValueError(f"Unknown environment '{name}', expected one of {sorted(GRAPH_NAMES)}")
    return GRAPH_NAMES[name]


@dataclass
class FalkorDBConfig:
    """
    FalkorDB connection settings.

    Attributes:
        host: FalkorDB server host
        port: Server port (6380 for the FalkorDB container)
        graph_name: Graph name (docgraph_dev / docgraph_test / docgraph_prod)
        max_connections: Max pooled connections
        timeout_ms: Operation timeout in milliseconds
        password: Optional password
        retry_attempts: Attempts per query on connection errors
    """
    host: str = field(default_factory=lambda: env_str("FALKORDB_HOST", "localhost"))
    port: int = field(default_factory=lambda: env_int("FALKORDB_PORT", 6380))
    graph_name: str = field(default_factory=lambda: env_str("FALKORDB_GRAPH_NAME", "docgraph_dev"))
    max_connections: int = field(default_factory=lambda: env_int("FALKORDB_MAX_CONNECTIONS", 10))
    timeout_ms: int = field(default_factory=lambda: env_int("FALKORDB_TIMEOUT_MS", 5000))
    password: Optional[str] = field(default_factory=lambda: env_str("FALKORDB_PASSWORD", "") or None)
    retry_attempts: int = field(default_factory=lambda: env_int("FALKORDB_RETRY_ATTEMPTS", 3))

    def __post_init__(self):
        if self.retry_attempts < 1:
            raise ValueError(f"retry_attempts must be >= 1, got {self.retry_attempts}")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be > 0, got {self.timeout_ms}")
        if self.max_connections < 1:
            raise ValueError(f"max_connections must be >= 1, got {self.max_connections}")

    @classmethod
    def for_environment(cls, environment: Optional[str] = None, **overrides) -> "FalkorDBConfig":
        """Settings targeting the graph of ``environment``; host and port still come from env."""
        return cls(graph_name=graph_name_for(environment), **overrides)
