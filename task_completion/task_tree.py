"""Side-effect-free transforms over nested task trees.

A tree is held as an arena: every node is stored flat under a stable key and
parent/child relations are key lookups. Transforms return new trees and never
mutate the nodes they were given.
"""
from dataclasses import dataclass, field
from typing import Callable, Iterable

from .models import TaskNode


@dataclass(frozen=True)
class TaskTree:
    nodes: dict[str, TaskNode] = field(default_factory=dict)
    children: dict[str, tuple[str, ...]] = field(default_factory=dict)
    roots: tuple[str, ...] = ()

    @classmethod
    def from_nested(cls, tasks: Iterable[TaskNode]) -> "TaskTree":
        nodes: dict[str, TaskNode] = {}
        children: dict[str, tuple[str, ...]] = {}

        def add(task: TaskNode, path: str) -> str:
            key = task.id if task.id and task.id not in nodes else f"#{path}"
            nodes[key] = task.model_copy(update={"subtasks": []})
            children[key] = tuple(
                add(child, f"{path}.{index}") for index, child in enumerate(task.subtasks)
            )
            return key

        roots = tuple(add(task, str(index)) for index, task in enumerate(tasks))
        return cls(nodes=nodes, children=children, roots=roots)

    def walk(self) -> list[str]:
        """Node keys in depth-first pre-order."""
        order: list[str] = []

        def visit(key: str):
            order.append(key)
            for child in self.children.get(key, ()):
                visit(child)

        for root in self.roots:
            visit(root)
        return order

    def flatten(self) -> list[TaskNode]:
        return [self.nodes[key] for key in self.walk()]

    def map_nodes(self, transform: Callable[[TaskNode], TaskNode]) -> "TaskTree":
        return TaskTree(
            nodes={key: transform(node) for key, node in self.nodes.items()},
            children=dict(self.children),
            roots=self.roots,
        )

    def prune(self, keep: Callable[[TaskNode], bool]) -> "TaskTree":
        """Drop every node failing `keep`, together with its subtree."""
        nodes: dict[str, TaskNode] = {}
        children: dict[str, tuple[str, ...]] = {}

        def visit(key: str) -> bool:
            node = self.nodes[key]
            if not keep(node):
                return False
            nodes[key] = node
            children[key] = tuple(child for child in self.children.get(key, ()) if visit(child))
            return True

        roots = tuple(root for root in self.roots if visit(root))
        return TaskTree(nodes=nodes, children=children, roots=roots)

    def append_roots(self, tasks: Iterable[TaskNode]) -> "TaskTree":
        extra = TaskTree.from_nested(tasks)
        nodes = dict(self.nodes)
        children = dict(self.children)
        renamed: dict[str, str] = {}
        for key in extra.walk():
            new_key = key if key not in nodes else f"{key}@{len(nodes)}"
            renamed[key] = new_key
            nodes[new_key] = extra.nodes[key]
        for key, child_keys in extra.children.items():
            children[renamed[key]] = tuple(renamed[child] for child in child_keys)
        roots = self.roots + tuple(renamed[root] for root in extra.roots)
        return TaskTree(nodes=nodes, children=children, roots=roots)

    def to_nested(self) -> list[TaskNode]:
        def build(key: str) -> TaskNode:
            node = self.nodes[key]
            return node.model_copy(
                update={"subtasks": [build(child) for child in self.children.get(key, ())]}
            )

        return [build(root) for root in self.roots]


def flatten_tasks(tasks: Iterable[TaskNode]) -> list[TaskNode]:
    return TaskTree.from_nested(tasks).flatten()
