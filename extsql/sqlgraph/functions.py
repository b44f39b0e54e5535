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


"""CREATE FUNCTION and CREATE OPERATOR rendering."""

from __future__ import annotations
from typing import (
    List,
    Optional,
    Tuple,
)

import dataclasses
import logging

from extsql import errors
from extsql.common import debug
from extsql.pgsql import common as pg_common
from extsql.pgsql.common import quote_ident as qi

from . import metadata
from . import returning
from .entities import (
    Argument,
    Attribute,
    CallableEntity,
    Entity,
    ExternAttr,
)
from .graph import EntityGraph, Resolution


logger = logging.getLogger('extsql.sqlgraph')

MODULE_PATHNAME = 'MODULE_PATHNAME'


@dataclasses.dataclass(frozen=True)
class RenderContext:
    """Everything a renderer may consult besides the entity itself."""

    graph: EntityGraph
    module_pathname: str = MODULE_PATHNAME


def header_comment(entity: Entity, path: Optional[str] = None) -> str:
    if path is None:
        path = entity.qualified_name
    if entity.file is None:
        return f'-- {path}\n'
    return f'-- {entity.file}:{entity.line}\n-- {path}\n'


def check_identifier(name: str, what: str) -> None:
    if not pg_common.ident_fits(name):
        raise errors.InvalidIdentifier(
            f'{what} name {name!r} is longer than '
            f'{pg_common.MAX_IDENT_LENGTH} bytes and would be truncated '
            f'by PostgreSQL',
            hint='choose a shorter name or supply the SQL by hand')


def requires_comment(names: Tuple[str, ...]) -> str:
    if not names:
        return ''
    lines = ['-- requires:']
    lines.extend(f'--   {name}' for name in names)
    return '\n'.join(lines) + '\n'


def infer_strict(
    fn: CallableEntity,
    graph: EntityGraph,
) -> Tuple[Attribute, ...]:
    """Add STRICT to *fn*'s attributes when no argument may be NULL.

    Arguments declared as optional, or typed with the engine's internal
    placeholder type, must be passed through to the callable even when
    NULL, so their presence keeps the function non-strict.
    """
    attrs = tuple(fn.attributes)
    if fn.has_attr(ExternAttr.Strict):
        return attrs

    for arg in fn.arguments:
        if arg.optional or graph.is_internal(fn, arg.type_ref):
            return attrs

    return attrs + (ExternAttr.Strict,)


def composite_sql(
    variant: metadata.Composite,
    composite_name: Optional[str],
    what: str,
) -> str:
    if composite_name is None:
        raise errors.MissingCompositeName(
            f'{what} is a composite type, but the declaration does not '
            f'name it',
            hint='use composite_type!("TypeName")')
    if variant.requires_array_brackets:
        return f'{composite_name}[]'
    return composite_name


def argument_sql(arg: Argument, res: Resolution) -> Optional[str]:
    """Return the SQL type of *arg*, or None if it is not passed from SQL."""
    variant = res.variant
    if isinstance(variant, metadata.Mapped):
        return variant.sql
    elif isinstance(variant, metadata.Composite):
        return composite_sql(
            variant, arg.composite_name, f'argument {arg.pattern!r}')
    else:
        return None


def _render_arguments(fn: CallableEntity, ctx: RenderContext) -> str:
    graph = ctx.graph
    rendered: List[Tuple[str, str]] = []

    for arg in fn.arguments:
        res = graph.resolve(fn, arg.type_ref)
        sql = argument_sql(arg, res)
        if sql is None:
            continue
        buf = qi(arg.pattern, force=True) + ' '
        if arg.variadic:
            buf += 'VARIADIC '
        buf += graph.schema_prefix_for(res.node) + sql
        if arg.default is not None:
            buf += f' DEFAULT {arg.default}'
        rendered.append((buf, arg.type_ref.name))

    if not rendered:
        return ''

    lines = []
    for idx, (buf, type_name) in enumerate(rendered):
        comma = ',' if idx < len(rendered) - 1 else ''
        lines.append(f'\t{buf}{comma} /* {type_name} */')
    return '\n' + '\n'.join(lines) + '\n'


def check_realized_return(fn: CallableEntity) -> None:
    declared = fn.return_shape.kind
    realized = fn.realized_return
    if realized is not None and realized != declared:
        raise errors.ReturnShapeMismatch(
            f'the declaration suggests a {declared} return value, but '
            f'the compiled callable returns a {realized} value')


def _return_type_sql(
    fn: CallableEntity,
    ctx: RenderContext,
    ref: metadata.TypeRef,
    composite_name: Optional[str],
) -> str:
    res = ctx.graph.resolve(fn, ref)
    variant = res.variant
    if isinstance(variant, metadata.Mapped):
        sql = variant.sql
    elif isinstance(variant, metadata.Composite):
        sql = composite_sql(variant, composite_name, 'the return value')
    else:
        raise errors.MissingCompositeName(
            f'return type {ref.name!r} has no SQL representation')
    return ctx.graph.schema_prefix_for(res.node) + sql


def render_returns(fn: CallableEntity, ctx: RenderContext) -> str:
    check_realized_return(fn)
    shape = fn.return_shape

    if isinstance(shape, returning.ReturningNone):
        return 'RETURNS void'
    elif isinstance(shape, returning.ReturningType):
        sql = _return_type_sql(
            fn, ctx, shape.type_ref, shape.composite_name)
        return f'RETURNS {sql} /* {shape.type_ref.name} */'
    elif isinstance(shape, returning.ReturningSetOf):
        sql = _return_type_sql(
            fn, ctx, shape.type_ref, shape.composite_name)
        return f'RETURNS SETOF {sql} /* {shape.type_ref.name} */'
    elif isinstance(shape, returning.ReturningIterated):
        columns = []
        for col in shape.columns:
            sql = _return_type_sql(
                fn, ctx, col.type_ref, col.composite_name)
            if col.name is not None:
                columns.append(f'{qi(col.name, force=True)} {sql}')
            else:
                columns.append(sql)
        return f'RETURNS TABLE({", ".join(columns)})'
    elif isinstance(shape, returning.ReturningTrigger):
        return f'RETURNS {metadata.TRIGGER_SQL}'
    else:
        raise errors.UnknownReturnShape(
            f'unexpected return shape {shape!r}')


def _render_attributes(attrs: Tuple[Attribute, ...]) -> str:
    rendered = [
        a.sql for a in attrs
        if isinstance(a, ExternAttr) and a.sql is not None
    ]
    if not rendered:
        return ''
    return ' '.join(rendered) + '\n'


def render_function(fn: CallableEntity, ctx: RenderContext) -> str:
    graph = ctx.graph
    header = header_comment(fn) + requires_comment(fn.requires())

    if fn.to_sql_config.content is not None:
        return header + fn.to_sql_config.content.strip('\n')

    attrs = infer_strict(fn, graph)
    create = (
        'CREATE OR REPLACE FUNCTION'
        if fn.has_attr(ExternAttr.CreateOrReplace) else 'CREATE FUNCTION'
    )
    name = graph.schema_prefix_for(fn) + qi(fn.name, force=True)

    search_path = ''
    if fn.search_path is not None:
        search_path = f'SET search_path TO {", ".join(fn.search_path)}\n'

    return (
        f'{header}'
        f'{create} {name}({_render_arguments(fn, ctx)}) '
        f'{render_returns(fn, ctx)}\n'
        f'{_render_attributes(attrs)}'
        f'{search_path}'
        f'LANGUAGE c\n'
        f"AS '{ctx.module_pathname}', '{fn.name}_wrapper';"
    )


def _operator_arg(
    fn: CallableEntity,
    ctx: RenderContext,
    arg: Argument,
) -> str:
    res = ctx.graph.resolve(fn, arg.type_ref)
    sql = argument_sql(arg, res)
    if sql is None:
        raise errors.InvalidOperatorArity(
            f'operator argument {arg.pattern!r} has no SQL type')
    return ctx.graph.schema_prefix_for(res.node) + sql


def render_operator(fn: CallableEntity, ctx: RenderContext) -> str:
    op = fn.operator
    assert op is not None

    if len(fn.arguments) != 2:
        raise errors.InvalidOperatorArity(
            f'operator {op.opname} must take exactly two arguments, '
            f'{fn.name!r} takes {len(fn.arguments)}')

    left, right = fn.arguments
    left_sql = _operator_arg(fn, ctx, left)
    right_sql = _operator_arg(fn, ctx, right)

    optionals = []
    if op.commutator is not None:
        optionals.append(f'\tCOMMUTATOR = {op.commutator}')
    if op.negator is not None:
        optionals.append(f'\tNEGATOR = {op.negator}')
    if op.restrict is not None:
        optionals.append(f'\tRESTRICT = {op.restrict}')
    if op.join is not None:
        optionals.append(f'\tJOIN = {op.join}')
    if op.hashes:
        optionals.append('\tHASHES')
    if op.merges:
        optionals.append('\tMERGES')

    procedure = ctx.graph.schema_prefix_for(fn) + qi(fn.name, force=True)
    maybe_comma = ',' if optionals else ''
    tail = ',\n'.join(optionals) + '\n' if optionals else ''

    return (
        f'{header_comment(fn)}'
        f'CREATE OPERATOR {op.opname} (\n'
        f'\tPROCEDURE={procedure},\n'
        f'\tLEFTARG={left_sql}, /* {left.type_ref.name} */\n'
        f'\tRIGHTARG={right_sql}{maybe_comma} /* {right.type_ref.name} */\n'
        f'{tail}'
        f');'
    )


def render_callable(fn: CallableEntity, ctx: RenderContext) -> str:
    """Render *fn*, and its operator if it declares one.

    Either the complete text is returned or an error is raised; no
    partial output is produced.
    """
    if not fn.to_sql_config.enabled:
        return ''

    with errors.ensure_source(fn.qualified_name, fn.file, fn.line):
        if not fn.to_sql_config.overrides_default():
            check_identifier(fn.name, 'function')
        sql = render_function(fn, ctx)
        if fn.operator is not None:
            sql += '\n\n' + render_operator(fn, ctx)

    if debug.flags.sqlgraph_render:
        debug.header(f'SQL: {fn.qualified_name}')
        debug.print(sql)

    logger.debug('rendered %s', fn.qualified_name, extra={'sql': sql})
    return sql
