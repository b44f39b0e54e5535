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


"""Entity records.

Every record is immutable.  Records are produced by a collector (see
:mod:`extsql.sqlgraph.declarations`), inserted into an
:class:`~extsql.sqlgraph.graph.EntityGraph`, and only read afterwards.
"""

from __future__ import annotations
from typing import (
    ClassVar,
    Optional,
    Tuple,
    Union,
)

import dataclasses
import functools

from extsql.common import enum as s_enum

from . import metadata
from . import returning
from . import used_type
from .metadata import ReturnKind, SqlVariant, TypeRef


class NodeKind(s_enum.StrEnum):
    Schema = 'schema'
    Function = 'fn'
    Type = 'type'
    TypeDefinition = 'type_def'
    Enum = 'enum'
    BuiltinType = 'builtin_type'
    Trigger = 'trigger'
    ExtensionSql = 'extension_sql'


NodeKey = Tuple[str, ...]


class Entity:

    kind: ClassVar[NodeKind]

    name: str
    module_path: str
    file: Optional[str]
    line: Optional[int]
    schema: Optional[str]

    @property
    def node_key(self) -> NodeKey:
        return (str(self.kind), self.module_path, self.name)

    @property
    def dot_identifier(self) -> str:
        return f'{self.kind} {self.name}'

    @property
    def qualified_name(self) -> str:
        if self.module_path:
            return f'{self.module_path}::{self.name}'
        return self.name


@dataclasses.dataclass(frozen=True)
class ToSqlConfig:
    """Overrides for the SQL generated for an entity.

    ``enabled=False`` suppresses the entity's SQL entirely; *content*
    replaces the generated statement with hand-written SQL.
    """

    enabled: bool = True
    content: Optional[str] = None

    def overrides_default(self) -> bool:
        return not self.enabled or self.content is not None


class ExternAttr(s_enum.StrEnum):
    CreateOrReplace = 'create_or_replace'
    Immutable = 'immutable'
    Stable = 'stable'
    Volatile = 'volatile'
    Strict = 'strict'
    ParallelSafe = 'parallel_safe'
    ParallelUnsafe = 'parallel_unsafe'
    ParallelRestricted = 'parallel_restricted'
    SecurityDefiner = 'security_definer'
    SecurityInvoker = 'security_invoker'
    Raw = 'raw'
    NoGuard = 'no_guard'

    @property
    def sql(self) -> Optional[str]:
        """The function option this attribute renders as, if any."""
        return _ATTR_SQL.get(self)


_ATTR_SQL = {
    ExternAttr.Immutable: 'IMMUTABLE',
    ExternAttr.Stable: 'STABLE',
    ExternAttr.Volatile: 'VOLATILE',
    ExternAttr.Strict: 'STRICT',
    ExternAttr.ParallelSafe: 'PARALLEL SAFE',
    ExternAttr.ParallelUnsafe: 'PARALLEL UNSAFE',
    ExternAttr.ParallelRestricted: 'PARALLEL RESTRICTED',
    ExternAttr.SecurityDefiner: 'SECURITY DEFINER',
    ExternAttr.SecurityInvoker: 'SECURITY INVOKER',
}


@dataclasses.dataclass(frozen=True)
class Requires:
    """Entities that must exist before the callable is created."""

    names: Tuple[str, ...]


Attribute = Union[ExternAttr, Requires]


@dataclasses.dataclass(frozen=True)
class OperatorMeta:
    opname: str
    commutator: Optional[str] = None
    negator: Optional[str] = None
    restrict: Optional[str] = None
    join: Optional[str] = None
    hashes: bool = False
    merges: bool = False


@dataclasses.dataclass(frozen=True)
class Argument:
    pattern: str
    type_ref: TypeRef
    optional: bool = False
    variadic: bool = False
    default: Optional[str] = None
    composite_name: Optional[str] = None

    @classmethod
    def from_declaration(cls, pattern: str, declared: str) -> Argument:
        used = used_type.resolve_used_type(declared)
        return cls(
            pattern=pattern,
            type_ref=used.type_ref,
            optional=used.optional,
            variadic=used.variadic,
            default=used.default,
            composite_name=used.composite_name,
        )


@functools.total_ordering
@dataclasses.dataclass(frozen=True, eq=False)
class CallableEntity(Entity):
    kind = NodeKind.Function

    name: str
    module_path: str
    file: Optional[str] = None
    line: Optional[int] = None
    arguments: Tuple[Argument, ...] = ()
    return_shape: returning.Returning = returning.RETURNS_NONE
    unaliased_name: Optional[str] = None
    full_path: Optional[str] = None
    schema: Optional[str] = None
    attributes: Tuple[Attribute, ...] = ()
    search_path: Optional[Tuple[str, ...]] = None
    operator: Optional[OperatorMeta] = None
    to_sql_config: ToSqlConfig = ToSqlConfig()
    #: The return shape observed on the compiled callable, when the
    #: collector captured it separately from the declaration.
    realized_return: Optional[ReturnKind] = None

    def __post_init__(self) -> None:
        if self.unaliased_name is None:
            object.__setattr__(self, 'unaliased_name', self.name)
        if self.full_path is None:
            object.__setattr__(
                self, 'full_path',
                f'{self.module_path}::{self.unaliased_name}')

    @classmethod
    def declare(
        cls,
        name: str,
        module_path: str,
        *,
        args: Tuple[Tuple[str, str], ...] = (),
        returns: Optional[str] = None,
        **kwargs,
    ) -> CallableEntity:
        """Build an entity from argument and return type declarations."""
        return cls(
            name=name,
            module_path=module_path,
            arguments=tuple(
                Argument.from_declaration(p, t) for p, t in args),
            return_shape=returning.classify(returns),
            **kwargs,
        )

    @property
    def signature(self) -> Tuple[str, ...]:
        return (
            self.module_path,
            self.name,
            *(a.type_ref.type_id for a in self.arguments),
            '->',
            str(self.return_shape.kind),
        )

    @property
    def node_key(self) -> NodeKey:
        return (str(self.kind), *self.signature)

    @property
    def dot_identifier(self) -> str:
        return f'fn {self.name}'

    def type_refs(self) -> Tuple[TypeRef, ...]:
        return (
            tuple(a.type_ref for a in self.arguments)
            + self.return_shape.type_refs()
        )

    def has_attr(self, attr: ExternAttr) -> bool:
        return attr in self.attributes

    def requires(self) -> Tuple[str, ...]:
        names: list[str] = []
        for attr in self.attributes:
            if isinstance(attr, Requires):
                names.extend(attr.names)
        return tuple(names)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CallableEntity):
            return NotImplemented
        return self.signature == other.signature

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, CallableEntity):
            return NotImplemented
        return self.signature < other.signature

    def __hash__(self) -> int:
        return hash(self.signature)


@dataclasses.dataclass(frozen=True)
class TypeEntity(Entity):
    """A user-defined base type with text input/output functions."""

    kind = NodeKind.Type

    name: str
    type_id: str
    module_path: str
    file: Optional[str] = None
    line: Optional[int] = None
    schema: Optional[str] = None
    sql: Optional[str] = None
    in_fn: Optional[str] = None
    out_fn: Optional[str] = None

    @property
    def sql_name(self) -> str:
        return self.sql if self.sql is not None else self.name

    @property
    def variant(self) -> SqlVariant:
        return metadata.Mapped(self.sql_name)

    def id_matches(self, type_id: str) -> bool:
        return self.type_id == type_id

    def has_definition(self) -> bool:
        return self.in_fn is not None and self.out_fn is not None

    def definition(self) -> TypeDefinition:
        return TypeDefinition(self)


@dataclasses.dataclass(frozen=True)
class TypeDefinition(Entity):
    """The complete ``CREATE TYPE`` that follows the shell type.

    The shell type is emitted first so that the input and output
    functions can name it; the definition can only be emitted once
    both functions exist.
    """

    kind = NodeKind.TypeDefinition

    type: TypeEntity

    @property
    def name(self) -> str:  # type: ignore[override]
        return self.type.name

    @property
    def module_path(self) -> str:  # type: ignore[override]
        return self.type.module_path

    @property
    def file(self) -> Optional[str]:  # type: ignore[override]
        return self.type.file

    @property
    def line(self) -> Optional[int]:  # type: ignore[override]
        return self.type.line

    @property
    def schema(self) -> Optional[str]:  # type: ignore[override]
        return self.type.schema


@dataclasses.dataclass(frozen=True)
class EnumEntity(Entity):
    kind = NodeKind.Enum

    name: str
    type_id: str
    module_path: str
    variants: Tuple[str, ...] = ()
    file: Optional[str] = None
    line: Optional[int] = None
    schema: Optional[str] = None

    @property
    def variant(self) -> SqlVariant:
        return metadata.Mapped(self.name)

    def id_matches(self, type_id: str) -> bool:
        return self.type_id == type_id


@dataclasses.dataclass(frozen=True)
class BuiltinType(Entity):
    kind = NodeKind.BuiltinType

    name: str
    variant: SqlVariant

    module_path: ClassVar[str] = ''
    file: ClassVar[Optional[str]] = None
    line: ClassVar[Optional[int]] = None
    schema: ClassVar[Optional[str]] = None

    @property
    def node_key(self) -> NodeKey:
        return (str(self.kind), self.name)

    @property
    def dot_identifier(self) -> str:
        return f'builtin {self.name}'

    def is_internal(self) -> bool:
        return self.variant == metadata.Mapped(metadata.INTERNAL_SQL)


@dataclasses.dataclass(frozen=True)
class SchemaEntity(Entity):
    """A schema holding every entity declared under *module_path*."""

    kind = NodeKind.Schema

    name: str
    module_path: str
    file: Optional[str] = None
    line: Optional[int] = None

    @property
    def schema(self) -> Optional[str]:  # type: ignore[override]
        return self.name

    def contains(self, module_path: str) -> bool:
        return (
            module_path == self.module_path
            or module_path.startswith(self.module_path + '::')
        )


@dataclasses.dataclass(frozen=True)
class ExtensionSqlEntity(Entity):
    """A hand-written SQL block placed in the generated script."""

    kind = NodeKind.ExtensionSql

    name: str
    sql: str
    module_path: str
    file: Optional[str] = None
    line: Optional[int] = None
    requires: Tuple[str, ...] = ()
    bootstrap: bool = False
    finalize: bool = False
    schema: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class TriggerEntity(Entity):
    """Registration record of a trigger function."""

    kind = NodeKind.Trigger

    function_name: str
    module_path: str
    file: Optional[str] = None
    line: Optional[int] = None
    full_path: Optional[str] = None
    schema: Optional[str] = None
    to_sql_config: ToSqlConfig = ToSqlConfig()

    def __post_init__(self) -> None:
        if self.full_path is None:
            object.__setattr__(
                self, 'full_path',
                f'{self.module_path}::{self.function_name}')

    @property
    def name(self) -> str:  # type: ignore[override]
        return self.function_name

    @property
    def wrapper_name(self) -> str:
        return f'{self.function_name}_wrapper'


TypeLike = Union[TypeEntity, EnumEntity, BuiltinType]
