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
    Callable,
    Dict,
    List,
    Optional,
    Type,
)

import concurrent.futures
import logging

from extsql import buildmeta

from . import ddl
from . import functions
from . import triggers
from .entities import (
    BuiltinType,
    CallableEntity,
    Entity,
    EnumEntity,
    ExtensionSqlEntity,
    SchemaEntity,
    TriggerEntity,
    TypeDefinition,
    TypeEntity,
)
from .functions import RenderContext
from .graph import EntityGraph


logger = logging.getLogger('extsql.sqlgraph')


def _render_builtin(node: BuiltinType, ctx: RenderContext) -> str:
    return ''


_RENDERERS: Dict[Type[Entity], Callable[..., str]] = {
    SchemaEntity: ddl.render_schema,
    EnumEntity: ddl.render_enum,
    TypeEntity: ddl.render_shell_type,
    TypeDefinition: ddl.render_type_definition,
    ExtensionSqlEntity: ddl.render_extension_sql,
    CallableEntity: functions.render_callable,
    TriggerEntity: triggers.render_trigger,
    BuiltinType: _render_builtin,
}


class SqlGenerator:
    """Render the SQL script of an :class:`~.graph.EntityGraph`.

    Blocks are emitted in dependency order; every entity appears after
    everything it depends on.
    """

    def __init__(
        self,
        graph: EntityGraph,
        *,
        module_pathname: str = functions.MODULE_PATHNAME,
        extension_name: Optional[str] = None,
    ) -> None:
        self.graph = graph
        self.extension_name = extension_name
        self.context = RenderContext(
            graph=graph, module_pathname=module_pathname)

    def header(self) -> str:
        lines = ['/*']
        if self.extension_name is not None:
            lines.append(
                f'Extension {self.extension_name}, generated by extsql '
                f'{buildmeta.get_version()}.')
        else:
            lines.append(
                f'Generated by extsql {buildmeta.get_version()}.')
        lines.append('')
        lines.append(
            'Statements are ordered by the entity dependency graph.')
        lines.append('*/')
        return '\n'.join(lines)

    def render(self, node: Entity) -> str:
        try:
            renderer = _RENDERERS[type(node)]
        except KeyError:
            raise TypeError(
                f'cannot render {type(node).__name__} entities') from None
        return renderer(node, self.context)

    def _assemble(self, blocks: List[str]) -> str:
        parts = [self.header()]
        parts.extend(b for b in blocks if b)
        return '\n\n'.join(parts) + '\n'

    def to_sql(self) -> str:
        blocks = [self.render(node) for node in self.graph.ordered()]
        logger.info('rendered %d entities', len(self.graph))
        return self._assemble(blocks)

    def render_parallel(self, max_workers: Optional[int] = None) -> str:
        """Same as :meth:`to_sql`, rendering entities on a thread pool."""
        nodes = self.graph.ordered()
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers
        ) as executor:
            blocks = list(executor.map(self.render, nodes))
        logger.info('rendered %d entities with %s workers',
                    len(nodes), max_workers or 'default')
        return self._assemble(blocks)

    def to_dot(self) -> str:
        return self.graph.to_dot()
