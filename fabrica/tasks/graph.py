"""Interpreter for the task graph.

The graph is validated once at construction: every referenced task must
exist, names must be unique and there must be no cycle. Invalid graphs
raise ConfigError before anything runs.
"""

import asyncio
import inspect
import time
from typing import Dict, Iterable, List

from ..exceptions import ConfigError
from ..logging import get_logger
from .nodes import Child, Leaf, Node, Parallel, Sequence, TaskFailure, TaskResult

logger = get_logger('tasks')


def _format_elapsed(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    return f"{seconds:.2f} s"


class TaskGraph:
    """A static, acyclic set of named tasks.

    Args:
        tasks: Top-level nodes; nested nodes are registered too
    """

    def __init__(self, tasks: Iterable[Node]):
        self._tasks: Dict[str, Node] = {}
        for node in tasks:
            self._register(node)
        self._validate()

    def _register(self, node: Node) -> None:
        existing = self._tasks.get(node.name)
        if existing is not None and existing is not node:
            raise ConfigError(f"duplicate task name '{node.name}'")
        self._tasks[node.name] = node
        for child in self._children(node):
            if isinstance(child, Node):
                self._register(child)

    @staticmethod
    def _children(node: Node) -> List[Child]:
        if isinstance(node, (Sequence, Parallel)):
            return list(node.children)
        return []

    @staticmethod
    def _child_name(child: Child) -> str:
        return child if isinstance(child, str) else child.name

    def _validate(self) -> None:
        for node in self._tasks.values():
            if isinstance(node, Leaf) and not callable(node.action):
                raise ConfigError(f"task '{node.name}' has no callable action")
            for child in self._children(node):
                name = self._child_name(child)
                if name not in self._tasks:
                    raise ConfigError(f"task '{node.name}' references unknown task '{name}'")

        # Depth-first search; a node seen again while still on the stack is a cycle
        visiting: List[str] = []
        done = set()

        def visit(name: str) -> None:
            if name in done:
                return
            if name in visiting:
                cycle = visiting[visiting.index(name):] + [name]
                raise ConfigError(f"task cycle: {' -> '.join(cycle)}")
            visiting.append(name)
            for child in self._children(self._tasks[name]):
                visit(self._child_name(child))
            visiting.pop()
            done.add(name)

        for name in self._tasks:
            visit(name)

    def __contains__(self, name: str) -> bool:
        return name in self._tasks

    @property
    def names(self) -> List[str]:
        return list(self._tasks)

    def get(self, name: str) -> Node:
        try:
            return self._tasks[name]
        except KeyError:
            raise ConfigError(f"unknown task '{name}'")

    def _resolve(self, child: Child) -> Node:
        return self.get(child) if isinstance(child, str) else child

    async def run(self, name: str) -> TaskResult:
        """Run a task and everything under it.

        Never raises for task errors: failures are collected in the
        returned TaskResult.
        """
        return await self._run_node(self.get(name))

    def run_sync(self, name: str) -> TaskResult:
        """Run a task on a fresh event loop."""
        return asyncio.run(self.run(name))

    async def _run_node(self, node: Node) -> TaskResult:
        start = time.monotonic()
        logger.info("Starting '%s'...", node.name)

        if isinstance(node, Leaf):
            failures = await self._run_leaf(node)
        elif isinstance(node, Sequence):
            failures = await self._run_sequence(node)
        elif isinstance(node, Parallel):
            failures = await self._run_parallel(node)
        else:
            raise ConfigError(f"unsupported node type {type(node).__name__}")

        elapsed = time.monotonic() - start
        if failures:
            logger.error("'%s' errored after %s", node.name, _format_elapsed(elapsed))
        else:
            logger.info("Finished '%s' after %s", node.name, _format_elapsed(elapsed))
        return TaskResult(name=node.name, failures=failures, elapsed=elapsed)

    async def _run_leaf(self, node: Leaf) -> List[TaskFailure]:
        try:
            if inspect.iscoroutinefunction(node.action):
                await node.action()
            else:
                await asyncio.to_thread(node.action)
        except Exception as e:
            logger.error("'%s': %s", node.name, e)
            logger.debug("'%s' traceback", node.name, exc_info=True)
            return [TaskFailure(task=node.name, error=e)]
        return []

    async def _run_sequence(self, node: Sequence) -> List[TaskFailure]:
        for child in node.children:
            result = await self._run_node(self._resolve(child))
            if not result.ok:
                return result.failures
        return []

    async def _run_parallel(self, node: Parallel) -> List[TaskFailure]:
        results = await asyncio.gather(
            *(self._run_node(self._resolve(child)) for child in node.children)
        )
        return [failure for result in results for failure in result.failures]
