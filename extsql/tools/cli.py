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

from extsql.common.log import early_setup
# ruff: noqa: E402
early_setup()

import json

import click

from extsql import buildmeta
from extsql import errors
from extsql.common import log
from extsql.sqlgraph import declarations
from extsql.sqlgraph import functions
from extsql.sqlgraph import graph as s_graph
from extsql.sqlgraph import generator
from extsql.sqlgraph import returning


@click.group(
    context_settings=dict(help_option_names=['-h', '--help']))
@click.option('--log-level',
              type=click.Choice(
                  ['debug', 'info', 'warning', 'error'],
                  case_sensitive=False),
              default='warning',
              envvar='EXTSQL_LOG_LEVEL',
              help='logging verbosity')
@click.version_option(buildmeta.get_version(), prog_name='extsql')
def extsqlcommands(log_level: str):
    log.setup_logging(log_level)


@extsqlcommands.command()
@click.argument('declarations_file', metavar='DECLARATIONS',
                type=click.File('r'))
@click.option('-o', '--output', type=click.File('w'), default='-',
              help='write the SQL script here instead of stdout')
@click.option('--default-schema', default=s_graph.DEFAULT_SCHEMA,
              envvar='EXTSQL_DEFAULT_SCHEMA', show_default=True,
              help='schema that is not spelled out in generated names')
@click.option('--module-pathname', default=functions.MODULE_PATHNAME,
              envvar='EXTSQL_MODULE_PATHNAME', show_default=True,
              help='library path written into AS clauses')
@click.option('--extension-name',
              help='extension name recorded in the script header')
@click.option('--dot', type=click.File('w'),
              help='also write the entity graph in Graphviz format')
@click.option('-j', '--jobs', type=click.IntRange(min=1), default=1,
              show_default=True,
              help='number of threads used to render entities')
def render(
    declarations_file,
    output,
    default_schema: str,
    module_pathname: str,
    extension_name,
    dot,
    jobs: int,
):
    """Render the SQL script for a declarations document."""
    try:
        document = json.load(declarations_file)
    except json.JSONDecodeError as e:
        raise click.ClickException(
            f'{declarations_file.name}: invalid JSON: {e}') from e

    try:
        entities = declarations.load(document)
        graph = s_graph.EntityGraph.build(
            entities, default_schema=default_schema)
        gen = generator.SqlGenerator(
            graph,
            module_pathname=module_pathname,
            extension_name=extension_name,
        )
        if jobs > 1:
            sql = gen.render_parallel(jobs)
        else:
            sql = gen.to_sql()
    except errors.ExtSQLError as e:
        raise click.ClickException(str(e)) from e

    output.write(sql)
    if dot is not None:
        dot.write(gen.to_dot())


def describe(shape: returning.Returning) -> str:
    if isinstance(shape, (returning.ReturningType,
                          returning.ReturningSetOf)):
        desc = f'{shape.kind} {shape.type_ref.name}'
        if shape.composite_name is not None:
            desc += f' ({shape.composite_name})'
        return desc
    elif isinstance(shape, returning.ReturningIterated):
        cols = []
        for col in shape.columns:
            if col.name is not None:
                cols.append(f'{col.name}: {col.type_ref.name}')
            else:
                cols.append(col.type_ref.name)
        return f'{shape.kind} ({", ".join(cols)})'
    else:
        return str(shape.kind)


@extsqlcommands.command()
@click.argument('declared_type', metavar='TYPE')
def classify(declared_type: str):
    """Print the return shape of a declared return type."""
    try:
        shape = returning.classify(declared_type)
    except errors.ExtSQLError as e:
        raise click.ClickException(str(e)) from e
    click.echo(describe(shape))


def main():
    extsqlcommands(prog_name='extsql')


# Import at the end of the file so that "extsql.tools.cli.extsqlcommands"
# is defined for all of the below modules when they try to import it.
from . import dflags  # noqa
