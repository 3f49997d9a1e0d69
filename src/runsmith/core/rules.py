"""Tree processor declaration and execution for the host document pass.

Processors declare their intent with the ``@tree_processor`` decorator, which
records ordering metadata (priority, ``before``/``after`` constraints). The
:class:`ProcessorRegistry` collects those declarations and sorts them
deterministically; :class:`TreeEngine` hands the document root to each
processor once per conversion.

Each processor receives the parsed tree and the per-conversion
:class:`~runsmith.core.context.EngineContext`. A processor either leaves the
tree untouched or splices new nodes into it; it never replaces the root.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any, cast

from .exceptions import ProcessorOrderError


if TYPE_CHECKING:  # pragma: no cover - typing only
    from bs4 import BeautifulSoup

    from .context import EngineContext


logger = logging.getLogger(__name__)


ProcessorCallable = Callable[["BeautifulSoup", "EngineContext"], None]


@dataclass
class TreeProcessor:
    """Concrete processor registered in the engine."""

    priority: int
    name: str
    handler: ProcessorCallable
    before: tuple[str, ...] = ()
    after: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProcessorDefinition:
    """Descriptor installed on processor callables by the decorator."""

    priority: int = 0
    name: str | None = None
    before: tuple[str, ...] = ()
    after: tuple[str, ...] = ()

    def bind(self, handler: ProcessorCallable) -> TreeProcessor:
        """Create a concrete processor bound to the callable."""
        name = self.name or getattr(handler, "__name__", handler.__class__.__name__)
        return TreeProcessor(
            priority=self.priority,
            name=name,
            handler=handler,
            before=self.before,
            after=self.after,
        )


class ProcessorRegistry:
    """Container used to gather tree processors before execution."""

    def __init__(self) -> None:
        self._processors: list[TreeProcessor] = []

    def register(self, processor: TreeProcessor) -> None:
        """Register a processor, replacing any previous one with the same name."""
        candidates = [item for item in self._processors if item.name != processor.name]
        candidates.append(processor)
        self._processors = self._sort(candidates)

    def __iter__(self) -> Iterator[TreeProcessor]:
        return iter(tuple(self._processors))

    def __len__(self) -> int:
        return len(self._processors)

    def names(self) -> list[str]:
        """Return processor names in execution order."""
        return [processor.name for processor in self._processors]

    def _sort(self, processors: list[TreeProcessor]) -> list[TreeProcessor]:
        """Return processors ordered deterministically using before/after constraints."""
        if len(processors) <= 1:
            return list(processors)

        name_to_index = {processor.name: index for index, processor in enumerate(processors)}
        adjacency: dict[int, set[int]] = {index: set() for index in range(len(processors))}
        indegree: dict[int, int] = dict.fromkeys(range(len(processors)), 0)

        def _add_edge(source: int, target: int) -> None:
            if target in adjacency[source]:
                return
            adjacency[source].add(target)
            indegree[target] += 1

        for current_index, processor in enumerate(processors):
            for target_name in processor.before:
                target_index = name_to_index.get(target_name)
                if target_index is not None:
                    _add_edge(current_index, target_index)
            for target_name in processor.after:
                target_index = name_to_index.get(target_name)
                if target_index is not None:
                    _add_edge(target_index, current_index)

        def _key(idx: int) -> tuple[int, str, int]:
            return (processors[idx].priority, processors[idx].name, idx)

        queue: deque[int] = deque(sorted((i for i, n in indegree.items() if n == 0), key=_key))
        ordered: list[int] = []

        while queue:
            current = queue.popleft()
            ordered.append(current)
            for neighbour in sorted(adjacency[current], key=_key):
                indegree[neighbour] -= 1
                if indegree[neighbour] == 0:
                    queue.append(neighbour)
            queue = deque(sorted(queue, key=_key))

        if len(ordered) != len(processors):
            cycle_names = sorted(
                processor.name
                for index, processor in enumerate(processors)
                if index not in ordered
            )
            raise ProcessorOrderError(
                "Cyclic tree processor dependencies detected: " + ", ".join(cycle_names)
            )

        return [processors[index] for index in ordered]


def tree_processor(
    *,
    priority: int = 0,
    name: str | None = None,
    before: Iterable[str] = (),
    after: Iterable[str] = (),
) -> Callable[[ProcessorCallable], ProcessorCallable]:
    """Decorator used to declare document tree processors."""
    definition = ProcessorDefinition(
        priority=priority,
        name=name,
        before=tuple(before),
        after=tuple(after),
    )

    def decorator(handler: ProcessorCallable) -> ProcessorCallable:
        cast(Any, handler).__tree_processor__ = definition
        return handler

    return decorator


class TreeEngine:
    """Execution engine that runs the registered processors over a document."""

    def __init__(self, registry: ProcessorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else ProcessorRegistry()

    def register(self, handler: ProcessorCallable) -> None:
        """Register a standalone callable decorated with ``@tree_processor``."""
        definition = getattr(handler, "__tree_processor__", None)
        if not isinstance(definition, ProcessorDefinition):
            msg = "Handler must be decorated with @tree_processor"
            raise TypeError(msg)
        self.registry.register(definition.bind(handler))

    def run(self, root: BeautifulSoup, context: EngineContext) -> BeautifulSoup:
        """Hand the document root to every processor in order."""
        logger.debug("tree processors: %s", ", ".join(self.registry.names()))
        for processor in self.registry:
            processor.handler(root, context)
        return root


__all__ = [
    "ProcessorCallable",
    "ProcessorDefinition",
    "ProcessorRegistry",
    "TreeEngine",
    "TreeProcessor",
    "tree_processor",
]
