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


"""SQL mappings of declared types."""

from __future__ import annotations
from typing import (
    Mapping,
    Optional,
    Tuple,
)

import dataclasses
import functools

from extsql.common import enum as s_enum

from . import typeexpr


@dataclasses.dataclass(frozen=True)
class TypeRef:
    """A reference to a type declared in the extension source.

    Built-in types are matched by *name*; user types and enums are
    matched by *type_id*, a stable identity supplied by the collector.
    """

    name: str
    type_id: str

    @classmethod
    def of(cls, ty: typeexpr.TypeExpr | str) -> TypeRef:
        if isinstance(ty, str):
            ty = typeexpr.parse_type(ty)
        name = str(typeexpr.normalize_lifetimes(ty))
        return cls(name=name, type_id=name)

    def __str__(self) -> str:
        return self.name


class SqlVariant:
    """How a type is spelled in SQL."""


@dataclasses.dataclass(frozen=True)
class Mapped(SqlVariant):
    sql: str


@dataclasses.dataclass(frozen=True)
class Composite(SqlVariant):
    """A row type whose name is only known from the declaration."""

    requires_array_brackets: bool = False


@dataclasses.dataclass(frozen=True)
class Skip(SqlVariant):
    """The type has no SQL counterpart and is left out of signatures."""


SKIP = Skip()


def array_of(variant: SqlVariant) -> SqlVariant:
    if isinstance(variant, Mapped):
        return Mapped(f'{variant.sql}[]')
    elif isinstance(variant, Composite):
        return Composite(requires_array_brackets=True)
    else:
        return variant


class ReturnKind(s_enum.StrEnum):
    NONE = 'none'
    TYPE = 'type'
    SETOF = 'setof'
    ITERATED = 'iterated'
    TRIGGER = 'trigger'


#: The row handle that stands in for ``composite_type!()`` declarations.
ROW_HANDLE = TypeRef('PgHeapTuple', 'PgHeapTuple')
ROW_HANDLE_ARRAY = TypeRef('Vec<PgHeapTuple>', 'Vec<PgHeapTuple>')

#: The engine's untyped, internal-only placeholder type.
INTERNAL_SQL = 'internal'

#: The trigger-row placeholder type returned by trigger functions.
TRIGGER_SQL = 'trigger'

#: The opaque call-context handle received by trigger wrappers.
TRIGGER_CONTEXT_TYPE = 'pg_sys::FunctionCallInfo'

ARRAY_WRAPPERS = frozenset(('Vec', 'Array', 'VariadicArray'))


BUILTIN_TYPES: Mapping[str, SqlVariant] = {
    '()': Mapped('void'),
    'bool': Mapped('bool'),
    'i8': Mapped('"char"'),
    'i16': Mapped('smallint'),
    'i32': Mapped('int'),
    'i64': Mapped('bigint'),
    'f32': Mapped('real'),
    'f64': Mapped('double precision'),
    'char': Mapped('varchar'),
    'str': Mapped('text'),
    '&str': Mapped('text'),
    "&'static str": Mapped('text'),
    'String': Mapped('text'),
    '&[u8]': Mapped('bytea'),
    "&'static [u8]": Mapped('bytea'),
    'Vec<u8>': Mapped('bytea'),
    '&CStr': Mapped('cstring'),
    "&'static CStr": Mapped('cstring'),
    'Oid': Mapped('oid'),
    'Json': Mapped('json'),
    'JsonB': Mapped('jsonb'),
    'Numeric': Mapped('numeric'),
    'AnyNumeric': Mapped('numeric'),
    'Date': Mapped('date'),
    'Time': Mapped('time'),
    'TimeWithTimeZone': Mapped('time with time zone'),
    'Timestamp': Mapped('timestamp'),
    'TimestampWithTimeZone': Mapped('timestamp with time zone'),
    'Interval': Mapped('interval'),
    'Uuid': Mapped('uuid'),
    'Inet': Mapped('inet'),
    'Point': Mapped('point'),
    'AnyElement': Mapped('anyelement'),
    'AnyArray': Mapped('anyarray'),
    'Internal': Mapped(INTERNAL_SQL),
    'PgHeapTuple': Composite(requires_array_brackets=False),
    'FunctionCallInfo': SKIP,
    TRIGGER_CONTEXT_TYPE: SKIP,
}


@functools.lru_cache(maxsize=1024)
def split_array(name: str) -> Optional[Tuple[str, bool]]:
    """Split an array wrapper type name into its element type name.

    Returns ``(element_name, is_variadic)`` for ``Vec<T>``, ``Array<T>``
    and ``VariadicArray<T>``, and None for anything else.
    """
    ty = typeexpr.parse_type(name)
    if not typeexpr.is_path(ty, *ARRAY_WRAPPERS):
        return None
    assert isinstance(ty, typeexpr.PathType)
    elem = ty.first_type_arg()
    if elem is None:
        return None
    return str(elem), ty.last.ident == 'VariadicArray'


@functools.lru_cache(maxsize=1024)
def builtin_names(name: str) -> Tuple[str, ...]:
    """Return the spellings under which *name* may be registered.

    A fully qualified path such as ``pgx::pg_sys::Oid`` is also looked up
    by its trailing segment, and ``pg_sys::X`` by its ``pg_sys`` suffix.
    """
    names = [name]
    ty = typeexpr.parse_type(name)
    if isinstance(ty, typeexpr.PathType) and len(ty.segments) > 1:
        segs = ty.segments
        for i, seg in enumerate(segs[:-1]):
            if seg.ident == 'pg_sys':
                names.append(str(typeexpr.PathType(segs[i:])))
                break
        names.append(str(typeexpr.PathType(segs[-1:])))
    return tuple(names)


def lookup_builtin(
    name: str,
    builtins: Mapping[str, SqlVariant] = BUILTIN_TYPES,
) -> Optional[Tuple[str, SqlVariant]]:
    """Find the registered built-in spelling of *name* and its mapping."""
    for candidate in builtin_names(name):
        variant = builtins.get(candidate)
        if variant is not None:
            return candidate, variant
    return None
