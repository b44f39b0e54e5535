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


"""Return-shape classification.

A callable's declared return type is reduced to one of five canonical
shapes: nothing, a single value, a set of single values, a table of named
columns, or the opaque row handle returned by triggers.  Classification
works on the parsed type expression and fails with
:class:`~extsql.errors.UnknownReturnShape` for anything it does not
recognize; it never falls back to a default shape.
"""

from __future__ import annotations
from typing import (
    ClassVar,
    Optional,
    Tuple,
)

import dataclasses
import logging

from extsql import errors
from extsql.common import debug

from . import metadata
from . import typeexpr as te
from .metadata import ReturnKind, TypeRef


logger = logging.getLogger('extsql.sqlgraph')


class Returning:

    kind: ClassVar[ReturnKind]

    def type_refs(self) -> Tuple[TypeRef, ...]:
        """All type references the shape depends on."""
        return ()


@dataclasses.dataclass(frozen=True)
class ReturningNone(Returning):
    kind = ReturnKind.NONE


@dataclasses.dataclass(frozen=True)
class ReturningType(Returning):
    kind = ReturnKind.TYPE

    type_ref: TypeRef
    composite_name: Optional[str] = None

    def type_refs(self) -> Tuple[TypeRef, ...]:
        return (self.type_ref,)


@dataclasses.dataclass(frozen=True)
class ReturningSetOf(Returning):
    kind = ReturnKind.SETOF

    type_ref: TypeRef
    composite_name: Optional[str] = None

    def type_refs(self) -> Tuple[TypeRef, ...]:
        return (self.type_ref,)


@dataclasses.dataclass(frozen=True)
class IteratedItem:
    type_ref: TypeRef
    name: Optional[str] = None
    composite_name: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class ReturningIterated(Returning):
    kind = ReturnKind.ITERATED

    columns: Tuple[IteratedItem, ...]

    def type_refs(self) -> Tuple[TypeRef, ...]:
        return tuple(c.type_ref for c in self.columns)


@dataclasses.dataclass(frozen=True)
class ReturningTrigger(Returning):
    kind = ReturnKind.TRIGGER


RETURNS_NONE = ReturningNone()
RETURNS_TRIGGER = ReturningTrigger()

NULLABLE_WRAPPERS = ('Option',)
FALLIBLE_WRAPPERS = ('Result',)
POINTER_WRAPPERS = ('Option', 'Box')


def value_type(ty: te.TypeExpr) -> te.TypeExpr:
    """Strip ``Option<..>`` and ``Result<.., E>`` wrappers off *ty*.

    Nullability and fallibility do not change how a value is spelled
    in SQL.
    """
    while te.is_path(ty, *NULLABLE_WRAPPERS, *FALLIBLE_WRAPPERS):
        assert isinstance(ty, te.PathType)
        inner = ty.first_type_arg()
        if inner is None:
            break
        ty = inner
    return ty


def composite_name_of(mac: te.MacroType) -> str:
    if (
        len(mac.args) != 1
        or not isinstance(mac.args[0], te.Literal)
        or not mac.args[0].is_string
    ):
        raise errors.MissingCompositeName(
            f'expected a single string literal in {mac}',
            hint='use composite_type!("TypeName")')
    return mac.args[0].value


def _is_row_handle(ty: te.TypeExpr) -> bool:
    if not isinstance(ty, te.PathType) or ty.last.ident != 'Datum':
        return False
    return len(ty.segments) == 1 or ty.has_segment('pg_sys')


def _is_trigger(ty: te.TypeExpr) -> bool:
    if _is_row_handle(ty):
        return True
    if te.is_path(ty, *POINTER_WRAPPERS):
        assert isinstance(ty, te.PathType)
        inner = ty.first_type_arg()
        return inner is not None and _is_row_handle(inner)
    return False


def _unknown(ty: te.TypeExpr, why: str) -> errors.UnknownReturnShape:
    return errors.UnknownReturnShape(f'cannot classify {ty}: {why}')


def _classify_iterated_item(elem: te.TypeExpr) -> IteratedItem:
    if isinstance(elem, te.MacroType):
        if elem.name == 'name':
            if (
                len(elem.args) != 2
                or not isinstance(elem.args[0], te.PathType)
                or len(elem.args[0].segments) != 1
                or elem.args[0].last.args
                or not isinstance(elem.args[1], te.TypeExpr)
            ):
                raise _unknown(elem, 'expected name!(column, Type)')
            column = elem.args[0].last.ident
            coltype = elem.args[1]
            if te.is_macro(coltype, 'composite_type'):
                assert isinstance(coltype, te.MacroType)
                return IteratedItem(
                    metadata.ROW_HANDLE, column, composite_name_of(coltype))
            return IteratedItem(TypeRef.of(value_type(coltype)), column)
        elif elem.name == 'composite_type':
            return IteratedItem(
                metadata.ROW_HANDLE, None, composite_name_of(elem))
        else:
            raise _unknown(
                elem, 'only name!() and composite_type!() are supported '
                      'in table columns')

    return IteratedItem(TypeRef.of(value_type(elem)))


def _classify_tuple(tup: te.TupleType) -> ReturningIterated:
    return ReturningIterated(
        tuple(_classify_iterated_item(e) for e in tup.elems))


def _classify_set_item(item: te.TypeExpr) -> Returning:
    if isinstance(item, te.TupleType) and item.elems:
        return _classify_tuple(item)
    elif isinstance(item, te.PathType):
        return ReturningSetOf(TypeRef.of(value_type(item)))
    elif isinstance(item, te.ReferenceType):
        if not isinstance(item.elem, te.PathType):
            raise _unknown(item, 'expected a reference to a path type')
        return ReturningSetOf(TypeRef.of(item.elem))
    elif te.is_macro(item, 'composite_type'):
        assert isinstance(item, te.MacroType)
        return ReturningSetOf(metadata.ROW_HANDLE, composite_name_of(item))
    else:
        raise _unknown(item, 'only iterators over tuples or paths '
                             'are supported')


def _classify_bounds(
    ty: te.ImplTraitType | te.DynTraitType,
) -> Returning:
    bound = ty.bounds[0]
    if not isinstance(bound, te.TraitBound):
        raise _unknown(ty, 'expected a trait bound')
    segment = bound.path.last
    if segment.ident != 'Iterator':
        raise _unknown(ty, f'{segment.ident} is not an iterator trait')
    item = segment.binding('Item')
    if item is None:
        raise _unknown(ty, 'iterator has no Item binding')
    return _classify_set_item(item.ty)


def _classify_path(ty: te.PathType) -> Returning:
    ident = ty.last.ident
    inner = ty.first_type_arg()

    if ident in POINTER_WRAPPERS and inner is not None:
        if isinstance(inner, (te.ImplTraitType, te.DynTraitType)):
            return _classify_bounds(inner)
        elif te.is_path(inner, *POINTER_WRAPPERS):
            assert isinstance(inner, te.PathType)
            nested = inner.first_type_arg()
            if isinstance(nested, (te.ImplTraitType, te.DynTraitType)):
                raise _unknown(ty, 'only one level of Option/Box may wrap '
                                   'an impl or dyn iterator')

    if ident == 'SetOfIterator':
        if inner is None:
            raise _unknown(ty, 'SetOfIterator requires an item type')
        return _classify_set_item(inner)

    if ident == 'TableIterator':
        if not isinstance(inner, te.TupleType) or not inner.elems:
            raise _unknown(ty, 'TableIterator requires a tuple of columns')
        return _classify_tuple(inner)

    return ReturningType(TypeRef.of(value_type(ty)))


def classify_type(ty: te.TypeExpr) -> Returning:
    ty = te.normalize_lifetimes(ty)

    # A fallible callable returns whatever its Ok variant holds.
    if te.is_path(ty, *FALLIBLE_WRAPPERS):
        assert isinstance(ty, te.PathType)
        ok = ty.first_type_arg()
        if ok is None:
            raise _unknown(ty, 'Result requires an Ok type')
        ty = ok

    if _is_trigger(ty):
        return RETURNS_TRIGGER
    elif isinstance(ty, (te.ImplTraitType, te.DynTraitType)):
        return _classify_bounds(ty)
    elif isinstance(ty, te.MacroType):
        if ty.name != 'composite_type':
            raise _unknown(ty, 'only composite_type!() is supported')
        return ReturningType(metadata.ROW_HANDLE, composite_name_of(ty))
    elif isinstance(ty, te.TupleType):
        if not ty.elems:
            return ReturningType(TypeRef.of(ty))
        return _classify_tuple(ty)
    elif isinstance(ty, te.ReferenceType):
        return ReturningType(TypeRef.of(ty))
    elif isinstance(ty, te.PathType):
        return _classify_path(ty)
    else:
        raise _unknown(ty, 'unsupported type expression')


def classify(declared: Optional[te.TypeExpr | str]) -> Returning:
    """Classify a declared return type.

    *declared* is None when the callable has no return type, a parsed
    type expression, or the declaration's source text.
    """
    if declared is None:
        shape: Returning = RETURNS_NONE
    else:
        if isinstance(declared, str):
            declared = te.parse_type(declared)
        shape = classify_type(declared)

    if debug.flags.sqlgraph_classify:
        debug.header('Return shape')
        debug.print(f'{declared} => {shape}')

    logger.debug('classified return type %s as %s', declared, shape.kind)
    return shape
