"""Task graph node types.

A task is one of three variants:
    Leaf(name, action)         - run a callable
    Sequence(name, children)   - run children in order, stop at first failure
    Parallel(name, children)   - run children concurrently, wait for all

Children are nodes or the names of other tasks in the same graph.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Union


@dataclass
class Node:
    """Base class for graph nodes."""
    name: str


Child = Union[Node, str]


@dataclass
class Leaf(Node):
    """A unit of work.

    Attributes:
        action: Plain callable (run in a worker thread) or coroutine
            function (awaited on the event loop); takes no arguments
        doc: One-line description
    """
    action: Callable[[], Any] = None
    doc: Optional[str] = None


@dataclass
class Sequence(Node):
    """Children run one after the other."""
    children: List[Child] = field(default_factory=list)


@dataclass
class Parallel(Node):
    """Children run concurrently; siblings are never cancelled."""
    children: List[Child] = field(default_factory=list)


@dataclass
class TaskFailure:
    """A failed leaf task and the error it raised."""
    task: str
    error: BaseException

    def __str__(self) -> str:
        return f"{self.task}: {type(self.error).__name__}: {self.error}"


@dataclass
class TaskResult:
    """Outcome of running a task.

    Attributes:
        name: Task that was run
        failures: Every failed leaf under the task (empty on success)
        elapsed: Wall time in seconds
    """
    name: str
    failures: List[TaskFailure] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def failed_tasks(self) -> List[str]:
        return [f.task for f in self.failures]
