"""
Search Strategies
=================

Built-in strategies and the registry that resolves names to strategies.

Built-ins:
- vector-only: cosine search, no expansion
- hybrid-vector-heavy: vector + lexical, lexical scores weighted 0.5
- vector-with-context: vector search, each hit expanded +/-2 positions (default)
- lexical-only: case-insensitive substring search

Custom strategies can be loaded from YAML:

    default: vector-with-context
    strategies:
      - name: wide-context
        version: "1.1"
        expand_context: true
        context_window: 4
"""

from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import structlog
import yaml

from docgraph.storage.retriever.models import SearchStrategy

log = structlog.get_logger()

DEFAULT_STRATEGY = "vector-with-context"


def builtin_strategies() -> List[SearchStrategy]:
    return [
        SearchStrategy(
            name="vector-only",
            description="Cosine similarity over chunk embeddings",
            use_vector=True,
            top_k=8,
            threshold=0.5,
        ),
        SearchStrategy(
            name="hybrid-vector-heavy",
            description="Vector search plus lexical search at half weight, with context",
            use_vector=True,
            use_lexical=True,
            top_k=8,
            threshold=0.5,
            expand_context=True,
            context_window=2,
            lexical_limit=2,
            lexical_weight=0.5,
        ),
        SearchStrategy(
            name="vector-with-context",
            description="Vector search, each hit expanded along document order",
            use_vector=True,
            top_k=8,
            threshold=0.5,
            expand_context=True,
            context_window=2,
        ),
        SearchStrategy(
            name="lexical-only",
            description="Case-insensitive substring search",
            use_vector=False,
            use_lexical=True,
            lexical_limit=10,
        ),
    ]


class StrategyRegistry:
    """
    Name -> SearchStrategy map with a default.

    Unknown names resolve to the default strategy (with a warning), never to an error.
    Checks added with add_validator() run on every later registration,
    including strategies loaded from YAML.
    """

    def __init__(
        self,
        strategies: Optional[List[SearchStrategy]] = None,
        default: str = DEFAULT_STRATEGY,
    ):
        self._strategies: Dict[str, SearchStrategy] = {}
        self._validators: List[Callable[[SearchStrategy], None]] = []
        for strategy in (builtin_strategies() if strategies is None else strategies):
            self.register(strategy)

        if default not in self._strategies:
            raise ValueError(f"Default strategy {default!r} is not registered")
        self.default = default

    def add_validator(self, check: Callable[[SearchStrategy], None]) -> None:
        """
        Run ``check`` on the registered strategies and on every later one.

        ``check`` raises ValueError to reject a strategy.
        """
        for strategy in self._strategies.values():
            check(strategy)
        self._validators.append(check)

    def register(self, strategy: SearchStrategy) -> None:
        """Add or replace a strategy."""
        for check in self._validators:
            check(strategy)
        if strategy.name in self._strategies:
            log.info(f"Replacing strategy {strategy.name}", version=strategy.version)
        self._strategies[strategy.name] = strategy

    def get(self, name: str) -> Optional[SearchStrategy]:
        return self._strategies.get(name)

    def resolve(self, name: Optional[str]) -> SearchStrategy:
        """Strategy by name; the default when name is None or unknown."""
        if name is None:
            return self._strategies[self.default]

        strategy = self._strategies.get(name)
        if strategy is None:
            log.warning(f"Unknown strategy '{name}', using default '{self.default}'")
            return self._strategies[self.default]
        return strategy

    def names(self) -> List[str]:
        return list(self._strategies)

    def all(self) -> List[SearchStrategy]:
        return list(self._strategies.values())

    def load_yaml(self, path: Union[str, Path]) -> List[str]:
        """
        Register strategies from a YAML file.

        Returns:
            Names of the strategies loaded

        Raises:
            FileNotFoundError: path does not exist
            ValueError: malformed file or invalid strategy
        """
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Strategy file {path} must contain a mapping")

        loaded = []
        for entry in data.get("strategies", []) or []:
            if not isinstance(entry, dict):
                raise ValueError(f"Strategy entries must be mappings, got {entry!r}")
            strategy = SearchStrategy.from_dict(entry)
            self.register(strategy)
            loaded.append(strategy.name)

        default = data.get("default")
        if default is not None:
            if default not in self._strategies:
                raise ValueError(f"Default strategy {default!r} is not registered")
            self.default = default

        log.info(f"Loaded {len(loaded)} strategies from {path}", default=self.default)
        return loaded


__all__ = ["StrategyRegistry", "builtin_strategies", "DEFAULT_STRATEGY"]
