"""Named tasks composed into sequences and parallel groups.

Example:
    from fabrica.tasks import Leaf, Parallel, Sequence, TaskGraph

    graph = TaskGraph([
        Leaf('clean', clean),
        Leaf('styles', styles),
        Leaf('scripts', scripts),
        Sequence('build', ['clean', Parallel('assets', ['styles', 'scripts'])]),
    ])
    result = graph.run_sync('build')
    for failure in result.failures:
        print(failure)
"""

from .nodes import Leaf, Node, Parallel, Sequence, TaskFailure, TaskResult
from .graph import TaskGraph

__all__ = [
    'Node', 'Leaf', 'Sequence', 'Parallel',
    'TaskFailure', 'TaskResult', 'TaskGraph',
]
