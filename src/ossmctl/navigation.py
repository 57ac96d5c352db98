"""
Page topology of the device menu and route finding over it.
"""

from collections import deque
from types import MappingProxyType
from typing import Hashable, Mapping, Sequence, TypeVar

from .errors import UnreachableError
from .models import Page

Node = TypeVar("Node", bound=Hashable)

# Allowed direct transitions between pages
NAVIGATION_GRAPH: Mapping[Page, Sequence[Page]] = MappingProxyType(
    {
        Page.MENU: (Page.SIMPLE_PENETRATION, Page.STROKE_ENGINE),
        Page.SIMPLE_PENETRATION: (Page.MENU,),
        Page.STROKE_ENGINE: (Page.MENU,),
    }
)


def find_route(
    start: Node, goal: Node, graph: Mapping[Node, Sequence[Node]] = NAVIGATION_GRAPH
) -> list[Node]:
    """Shortest list of pages to visit to get from ``start`` to ``goal``.

    Breadth-first over ``graph``; ties go to the edge listed first. The
    result excludes ``start`` and is empty when already at ``goal``.

    Raises:
        UnreachableError: No path exists
    """
    if start == goal:
        return []
    if goal in graph.get(start, ()):
        return [goal]

    previous: dict = {start: None}
    frontier = deque([start])
    while frontier:
        node = frontier.popleft()
        for neighbour in graph.get(node, ()):
            if neighbour in previous:
                continue
            previous[neighbour] = node
            if neighbour == goal:
                route = [goal]
                while previous[route[-1]] != start:
                    route.append(previous[route[-1]])
                route.reverse()
                return route
            frontier.append(neighbour)

    raise UnreachableError(f"No navigation path from {start} to {goal}")
