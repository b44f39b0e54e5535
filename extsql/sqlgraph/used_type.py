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
    Optional,
)

import dataclasses

from extsql import errors

from . import metadata
from . import returning
from . import typeexpr as te
from .metadata import TypeRef


@dataclasses.dataclass(frozen=True)
class UsedType:
    """What an argument declaration says about its type."""

    type_ref: TypeRef
    optional: bool = False
    variadic: bool = False
    default: Optional[str] = None
    composite_name: Optional[str] = None


def _default_literal(mac: te.MacroType) -> tuple[te.TypeExpr, str]:
    if len(mac.args) != 2 or not isinstance(mac.args[0], te.TypeExpr):
        raise errors.TypeExpressionError(
            f'expected default!(Type, value), got {mac}')
    value = mac.args[1]
    if isinstance(value, te.Literal):
        return mac.args[0], value.value
    else:
        # Bare identifiers such as NULL or true.
        return mac.args[0], str(value)


def resolve_used_type(ty: te.TypeExpr | str) -> UsedType:
    if isinstance(ty, str):
        ty = te.parse_type(ty)
    ty = te.normalize_lifetimes(ty)

    default = None
    if te.is_macro(ty, 'default'):
        assert isinstance(ty, te.MacroType)
        ty, default = _default_literal(ty)

    optional = False
    if te.is_path(ty, *returning.NULLABLE_WRAPPERS):
        assert isinstance(ty, te.PathType)
        inner = ty.first_type_arg()
        if inner is not None:
            optional = True
            ty = inner

    if te.is_macro(ty, 'composite_type'):
        assert isinstance(ty, te.MacroType)
        return UsedType(
            metadata.ROW_HANDLE,
            optional=optional,
            default=default,
            composite_name=returning.composite_name_of(ty),
        )

    variadic = False
    if te.is_path(ty, *metadata.ARRAY_WRAPPERS):
        assert isinstance(ty, te.PathType)
        variadic = ty.last.ident == 'VariadicArray'
        elem = ty.first_type_arg()
        if elem is not None and te.is_path(elem, *returning.NULLABLE_WRAPPERS):
            # Array elements may be NULL; the SQL type is the same.
            assert isinstance(elem, te.PathType)
            elem = elem.first_type_arg() or elem
            ty = te.PathType(
                ty.segments[:-1]
                + (te.PathSegment(ty.last.ident, (elem,)),),
                ty.leading_colons,
            )
        if te.is_macro(elem, 'composite_type'):
            assert isinstance(elem, te.MacroType)
            return UsedType(
                metadata.ROW_HANDLE_ARRAY,
                optional=optional,
                variadic=variadic,
                default=default,
                composite_name=returning.composite_name_of(elem),
            )

    return UsedType(
        TypeRef.of(ty),
        optional=optional,
        variadic=variadic,
        default=default,
    )
