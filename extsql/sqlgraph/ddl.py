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


"""DDL for the non-callable entities: schemas, enums, types, SQL blocks."""

from __future__ import annotations

import textwrap

from extsql import errors
from extsql.pgsql.common import quote_ident as qi
from extsql.pgsql.common import quote_literal as ql

from .entities import (
    CallableEntity,
    EnumEntity,
    ExtensionSqlEntity,
    SchemaEntity,
    TypeDefinition,
    TypeEntity,
)
from .functions import RenderContext, header_comment


def render_schema(schema: SchemaEntity, ctx: RenderContext) -> str:
    return (
        f'{header_comment(schema, schema.module_path or schema.name)}'
        f'CREATE SCHEMA IF NOT EXISTS {qi(schema.name)};'
    )


def render_enum(enum: EnumEntity, ctx: RenderContext) -> str:
    prefix = ctx.graph.schema_prefix_for(enum)
    values = ', '.join(ql(v) for v in enum.variants)
    return (
        f'{header_comment(enum)}'
        f'CREATE TYPE {prefix}{enum.name} AS ENUM ({values});'
    )


def render_shell_type(ty: TypeEntity, ctx: RenderContext) -> str:
    prefix = ctx.graph.schema_prefix_for(ty)
    return (
        f'{header_comment(ty)}'
        f'CREATE TYPE {prefix}{ty.sql_name};'
    )


def _io_function(
    typedef: TypeDefinition,
    ctx: RenderContext,
    name: str,
) -> str:
    for key in sorted(ctx.graph.dependencies(typedef)):
        dep = ctx.graph[key]
        if isinstance(dep, CallableEntity) and dep.name == name:
            return (
                f'{ctx.graph.schema_prefix_for(dep)}{dep.name}, '
                f'/* {dep.full_path} */'
            )
    raise errors.UnresolvedTypeReference(
        f'type {typedef.name!r} names function {name!r}, '
        f'which is not in the entity graph')


def render_type_definition(
    typedef: TypeDefinition,
    ctx: RenderContext,
) -> str:
    ty = typedef.type
    assert ty.in_fn is not None and ty.out_fn is not None
    prefix = ctx.graph.schema_prefix_for(typedef)

    with errors.ensure_source(typedef.qualified_name, ty.file, ty.line):
        in_fn = _io_function(typedef, ctx, ty.in_fn)
        out_fn = _io_function(typedef, ctx, ty.out_fn)

    return header_comment(typedef) + textwrap.dedent(f'''\
        CREATE TYPE {prefix}{ty.sql_name} (
        \tINTERNALLENGTH = variable,
        \tINPUT = {in_fn}
        \tOUTPUT = {out_fn}
        \tSTORAGE = extended
        );''')


def render_extension_sql(block: ExtensionSqlEntity, ctx: RenderContext) -> str:
    return header_comment(block) + block.sql.strip('\n')
