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


"""The entity graph.

Nodes are entities; an edge from A to B means A references B and must be
created after it.  The graph is assembled by :class:`GraphBuilder` and
frozen into an :class:`EntityGraph`, which never changes afterwards and
can be shared freely between renderers.
"""

from __future__ import annotations
from typing import (
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Tuple,
)

import logging

import immutables

from extsql import errors
from extsql.common import debug
from extsql.common import topological
from extsql.common.ordered import OrderedSet
from extsql.pgsql.common import quote_ident as qi

from . import metadata
from .entities import (
    BuiltinType,
    CallableEntity,
    Entity,
    EnumEntity,
    ExtensionSqlEntity,
    NodeKey,
    NodeKind,
    SchemaEntity,
    TypeDefinition,
    TypeEntity,
    TypeLike,
)
from .metadata import SqlVariant, TypeRef


logger = logging.getLogger('extsql.sqlgraph')

DEFAULT_SCHEMA = 'public'


class Resolution(NamedTuple):
    """A type reference resolved to a graph node and its SQL spelling."""

    node: TypeLike
    variant: SqlVariant


def _match(
    ref: TypeRef,
    candidates: Iterable[Entity],
) -> Optional[Resolution]:
    candidates = [
        c.type if isinstance(c, TypeDefinition) else c for c in candidates
    ]

    # Type ids first, then built-in names.
    for entity in candidates:
        if isinstance(entity, TypeEntity) and entity.id_matches(ref.type_id):
            return Resolution(entity, entity.variant)
    for entity in candidates:
        if isinstance(entity, EnumEntity) and entity.id_matches(ref.type_id):
            return Resolution(entity, entity.variant)
    names = metadata.builtin_names(ref.name)
    for entity in candidates:
        if isinstance(entity, BuiltinType) and entity.name in names:
            return Resolution(entity, entity.variant)
    return None


def _element_ref(ref: TypeRef) -> Optional[TypeRef]:
    split = metadata.split_array(ref.name)
    if split is None:
        return None
    elem, _ = split
    return TypeRef(elem, elem)


def _resolve_in(
    ref: TypeRef,
    candidates: Iterable[Entity],
) -> Optional[Resolution]:
    candidates = list(candidates)
    found = _match(ref, candidates)
    if found is None:
        elem = _element_ref(ref)
        if elem is not None:
            inner = _match(elem, candidates)
            if inner is not None:
                found = Resolution(
                    inner.node, metadata.array_of(inner.variant))
    return found


class EntityGraph:

    def __init__(
        self,
        *,
        nodes: immutables.Map[NodeKey, Entity],
        deps: immutables.Map[NodeKey, frozenset[NodeKey]],
        default_schema: str = DEFAULT_SCHEMA,
    ) -> None:
        self._nodes = nodes
        self._deps = deps
        neighbors: Dict[NodeKey, set[NodeKey]] = {k: set() for k in nodes}
        for key, targets in deps.items():
            for target in targets:
                neighbors[key].add(target)
                neighbors[target].add(key)
        self._neighbors = immutables.Map(
            {k: frozenset(v) for k, v in neighbors.items()})
        self.default_schema = default_schema

    @classmethod
    def build(
        cls,
        entities: Iterable[Entity],
        *,
        default_schema: str = DEFAULT_SCHEMA,
        builtins: Mapping[str, SqlVariant] = metadata.BUILTIN_TYPES,
    ) -> EntityGraph:
        builder = GraphBuilder(
            default_schema=default_schema, builtins=builtins)
        for entity in entities:
            builder.add(entity)
        return builder.freeze()

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, key: object) -> bool:
        return key in self._nodes

    def __getitem__(self, key: NodeKey) -> Entity:
        return self._nodes[key]

    def nodes(self) -> Iterator[Entity]:
        return iter(self._nodes.values())

    def nodes_of_kind(self, kind: NodeKind) -> List[Entity]:
        return sorted(
            (n for n in self._nodes.values() if n.kind == kind),
            key=lambda n: n.node_key,
        )

    def dependencies(self, node: Entity) -> frozenset[NodeKey]:
        return self._deps.get(node.node_key, frozenset())

    def neighbors(self, node: Entity) -> Iterator[Entity]:
        for key in sorted(self._neighbors.get(node.node_key, ())):
            yield self._nodes[key]

    def find_callable(self, name: str) -> Optional[CallableEntity]:
        for node in self.nodes_of_kind(NodeKind.Function):
            if node.name == name:
                assert isinstance(node, CallableEntity)
                return node
        return None

    def resolve(self, node: Entity, ref: TypeRef) -> Resolution:
        """Resolve *ref* among the entities *node* is connected to."""
        found = _resolve_in(ref, self.neighbors(node))
        if found is None:
            raise errors.UnresolvedTypeReference(
                f'could not find type {ref.name!r} in the entity graph',
                details=f'referenced from {node.dot_identifier}',
            )
        return found

    def resolve_global(self, ref: TypeRef) -> Resolution:
        """Resolve *ref* against every node of the graph."""
        nodes = sorted(self._nodes.values(), key=lambda n: n.node_key)
        found = _resolve_in(ref, nodes)
        if found is None:
            raise errors.UnresolvedTypeReference(
                f'could not find type {ref.name!r} in the entity graph')
        return found

    def is_internal(self, node: Entity, ref: TypeRef) -> bool:
        res = self.resolve(node, ref)
        return isinstance(res.node, BuiltinType) and res.node.is_internal()

    def schema_of(self, node: Entity) -> Optional[str]:
        if isinstance(node, BuiltinType):
            return None
        elif node.schema is not None:
            return node.schema
        best: Optional[SchemaEntity] = None
        for schema in self.nodes_of_kind(NodeKind.Schema):
            assert isinstance(schema, SchemaEntity)
            if schema.contains(node.module_path) and (
                best is None
                or len(schema.module_path) > len(best.module_path)
            ):
                best = schema
        return best.name if best is not None else None

    def schema_prefix_for(self, node: Entity) -> str:
        """Return the namespace qualifier to print before *node*'s name."""
        if isinstance(node, SchemaEntity):
            return ''
        schema = self.schema_of(node)
        if schema is None or schema == self.default_schema:
            return ''
        return f'{qi(schema)}.'

    def ordered(self) -> Tuple[Entity, ...]:
        """Return all nodes so that every node follows its dependencies.

        Unrelated nodes are ordered by their node key.
        """
        depgraph = {
            key: topological.DepGraphEntry(
                item=self._nodes[key],
                deps=OrderedSet(sorted(self._deps.get(key, ()))),
            )
            for key in sorted(self._nodes)
        }
        try:
            return topological.sort(depgraph)
        except topological.CycleError as e:
            raise errors.DependencyCycleError(str(e)) from e

    def to_dot(self) -> str:
        lines = ['digraph sqlgraph {']
        for key in sorted(self._nodes):
            node = self._nodes[key]
            lines.append(f'    "{node.dot_identifier}";')
        for key in sorted(self._deps):
            src = self._nodes[key]
            for target in sorted(self._deps[key]):
                dst = self._nodes[target]
                lines.append(
                    f'    "{src.dot_identifier}" -> "{dst.dot_identifier}";')
        lines.append('}')
        return '\n'.join(lines) + '\n'


class GraphBuilder:

    def __init__(
        self,
        *,
        default_schema: str = DEFAULT_SCHEMA,
        builtins: Mapping[str, SqlVariant] = metadata.BUILTIN_TYPES,
    ) -> None:
        self.default_schema = default_schema
        self.builtins = builtins
        self.nodes: Dict[NodeKey, Entity] = {}
        self.deps: Dict[NodeKey, OrderedSet[NodeKey]] = {}
        self._types: Dict[str, TypeEntity] = {}
        self._enums: Dict[str, EnumEntity] = {}

    def add(self, entity: Entity) -> None:
        key = entity.node_key
        if key in self.nodes:
            raise self._duplicate(
                entity, f'{entity.dot_identifier} is declared more than once')

        registry: Optional[Dict[str, Any]] = None
        if isinstance(entity, TypeEntity):
            registry = self._types
        elif isinstance(entity, EnumEntity):
            registry = self._enums
        if registry is not None and entity.type_id in registry:
            other = registry[entity.type_id]
            raise self._duplicate(
                entity,
                f'{entity.dot_identifier} has the same type id '
                f'{entity.type_id!r} as {other.dot_identifier}')

        self.nodes[key] = entity
        self.deps[key] = OrderedSet()

        if isinstance(entity, TypeEntity):
            self._types[entity.type_id] = entity
            if entity.has_definition():
                self.add(entity.definition())
        elif isinstance(entity, EnumEntity):
            self._enums[entity.type_id] = entity

    def _duplicate(
        self,
        entity: Entity,
        msg: str,
    ) -> errors.DuplicateEntityError:
        return errors.DuplicateEntityError(
            msg,
            entity=entity.qualified_name,
            filename=entity.file,
            line=entity.line,
        )

    def _builtin(self, ref: TypeRef) -> Optional[BuiltinType]:
        found = metadata.lookup_builtin(ref.name, self.builtins)
        if found is None:
            return None
        name, variant = found
        node = BuiltinType(name, variant)
        if node.node_key not in self.nodes:
            self.nodes[node.node_key] = node
            self.deps[node.node_key] = OrderedSet()
        return node

    def _resolve_exact(self, ref: TypeRef) -> Optional[TypeLike]:
        if ref.type_id in self._types:
            return self._types[ref.type_id]
        if ref.type_id in self._enums:
            return self._enums[ref.type_id]
        return self._builtin(ref)

    def resolve(self, ref: TypeRef) -> TypeLike:
        node = self._resolve_exact(ref)
        if node is None:
            elem = _element_ref(ref)
            if elem is not None:
                node = self._resolve_exact(elem)
        if node is None:
            raise errors.UnresolvedTypeReference(
                f'could not find type {ref.name!r} in the entity graph')
        return node

    def _by_name(self, name: str) -> List[Entity]:
        return [
            e for e in self.nodes.values()
            if e.name == name
            and not isinstance(e, (BuiltinType, TypeDefinition))
        ]

    def _link(self, src: Entity, dst: Entity) -> None:
        if src.node_key != dst.node_key:
            self.deps[src.node_key].add(dst.node_key)

    def _link_callable(self, fn: CallableEntity) -> None:
        for ref in fn.type_refs():
            target = self.resolve(ref)
            if (
                isinstance(target, TypeEntity)
                and target.has_definition()
                and fn.name not in (target.in_fn, target.out_fn)
            ):
                self._link(fn, target.definition())
            else:
                self._link(fn, target)
        self._link_required(fn, fn.requires())

    def _link_required(self, src: Entity, names: Iterable[str]) -> None:
        for name in names:
            targets = self._by_name(name)
            if not targets:
                raise errors.UnresolvedTypeReference(
                    f'{src.dot_identifier} requires {name!r}, '
                    f'which is not declared')
            for target in targets:
                self._link(src, target)

    def _link_type_definition(self, typedef: TypeDefinition) -> None:
        self._link(typedef, typedef.type)
        for fname in (typedef.type.in_fn, typedef.type.out_fn):
            fns = [
                e for e in self._by_name(fname or '')
                if isinstance(e, CallableEntity)
            ]
            if not fns:
                raise errors.UnresolvedTypeReference(
                    f'type {typedef.name!r} names function {fname!r}, '
                    f'which is not declared')
            for fn in fns:
                self._link(typedef, fn)

    def _schema_node(self, entity: Entity) -> Optional[SchemaEntity]:
        schemas = [
            e for e in self.nodes.values() if isinstance(e, SchemaEntity)
        ]
        if entity.schema is not None:
            for schema in schemas:
                if schema.name == entity.schema:
                    return schema
            return None
        best: Optional[SchemaEntity] = None
        for schema in schemas:
            if schema.contains(entity.module_path) and (
                best is None
                or len(schema.module_path) > len(best.module_path)
            ):
                best = schema
        return best

    def freeze(self) -> EntityGraph:
        declared = [
            e for e in list(self.nodes.values())
            if not isinstance(e, BuiltinType)
        ]

        for entity in declared:
            with errors.ensure_source(
                entity.qualified_name, entity.file, entity.line
            ):
                if isinstance(entity, CallableEntity):
                    self._link_callable(entity)
                elif isinstance(entity, TypeDefinition):
                    self._link_type_definition(entity)
                elif isinstance(entity, ExtensionSqlEntity):
                    self._link_required(entity, entity.requires)

                if not isinstance(entity, SchemaEntity):
                    schema = self._schema_node(entity)
                    if schema is not None:
                        self._link(entity, schema)

        bootstrap = [
            e for e in declared
            if isinstance(e, ExtensionSqlEntity) and e.bootstrap
        ]
        finalize = [
            e for e in declared
            if isinstance(e, ExtensionSqlEntity) and e.finalize
        ]
        for entity in self.nodes.values():
            if entity in bootstrap or entity in finalize:
                continue
            for boot in bootstrap:
                self._link(entity, boot)
            for fin in finalize:
                self._link(fin, entity)

        graph = EntityGraph(
            nodes=immutables.Map(self.nodes),
            deps=immutables.Map(
                {k: frozenset(v) for k, v in self.deps.items()}),
            default_schema=self.default_schema,
        )

        if debug.flags.sqlgraph_graph:
            debug.header('Entity graph')
            debug.print(graph.to_dot())

        logger.debug('froze entity graph with %d nodes', len(graph))
        return graph
