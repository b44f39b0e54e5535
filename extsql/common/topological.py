#
# This source file is part of the extsql open source project.
#
# Copyright 2022-present the extsql authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#


from __future__ import annotations
from typing import (
    Any,
    Generic,
    Optional,
    Tuple,
    TypeVar,
    Iterator,
    Mapping,
    MutableSet,
    Dict,
)

from collections import defaultdict

from extsql.common.ordered import OrderedSet


class UnresolvedReferenceError(Exception):
    pass


class CycleError(Exception):
    def __init__(
        self,
        msg: str,
        item: Any,
        path: tuple[Any, ...] = (),
    ) -> None:
        super().__init__(msg)
        self.item = item
        self.path = path


K = TypeVar('K')
V = TypeVar('V')


class DepGraphEntry(Generic[K, V]):

    #: The graph node
    item: V
    #: An optional set of dependencies for the graph node as lookup keys.
    deps: MutableSet[K]

    def __init__(
        self,
        item: V,
        deps: Optional[MutableSet[K]] = None,
    ) -> None:
        self.item = item
        if deps is None:
            deps = OrderedSet()
        self.deps = deps


def sort_ex(
    graph: Mapping[K, DepGraphEntry[K, V]],
    *,
    allow_unresolved: bool = False,
) -> Iterator[Tuple[K, DepGraphEntry[K, V]]]:
    """Yield graph entries so that every entry follows its dependencies.

    Entries with no ordering relation keep the iteration order of *graph*,
    so a caller that wants a deterministic result should pass a mapping
    whose keys are already sorted.
    """

    adj: Dict[K, OrderedSet[K]] = defaultdict(OrderedSet)

    for item_name, item in graph.items():
        if item.deps:
            for dep in item.deps:
                if dep in graph:
                    adj[item_name].add(dep)
                elif not allow_unresolved:
                    raise UnresolvedReferenceError(
                        'reference to an undefined item {} in {}'.format(
                            dep, item_name))

    visiting: OrderedSet[K] = OrderedSet()
    visited = set()
    order = []

    def visit(item: K) -> None:
        if item in visiting:
            # Separate the matching item from the rest of the visiting
            # set for error reporting.
            vis_list = tuple(visiting - {item})
            cycle_item = item if len(vis_list) == 0 else vis_list[-1]
            raise CycleError(
                f"dependency cycle between {cycle_item!r} "
                f"and {item!r}",
                path=vis_list,
                item=item,
            )
        if item not in visited:
            visiting.add(item)
            try:
                for n in adj[item]:
                    visit(n)
                order.append(item)
                visited.add(item)
            finally:
                visiting.remove(item)

    for key in graph:
        visit(key)

    return ((key, graph[key]) for key in order)


def sort(
    graph: Mapping[K, DepGraphEntry[K, V]],
    *,
    allow_unresolved: bool = False,
) -> Tuple[V, ...]:
    items = sort_ex(graph, allow_unresolved=allow_unresolved)
    return tuple(i[1].item for i in items)
