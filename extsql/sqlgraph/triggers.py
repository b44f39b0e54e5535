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


"""Trigger functions.

A trigger is registered as a :class:`~.entities.TriggerEntity` and
invoked through a :class:`TriggerWrapper`, which has the single fixed
shape the engine expects of a trigger entry point.
"""

from __future__ import annotations
from typing import (
    Any,
    Callable,
    Optional,
    Tuple,
)

import inspect
import logging

from extsql import errors
from extsql.pgsql.common import quote_ident as qi

from .entities import ToSqlConfig, TriggerEntity
from .functions import RenderContext, check_identifier, header_comment


__all__ = (
    'TriggerAbort',
    'TriggerEntity',
    'TriggerWrapper',
    'render_trigger',
    'trigger_from_function',
)

logger = logging.getLogger('extsql.sqlgraph')

FUNCTION_NAME_PLACEHOLDER = '@FUNCTION_NAME@'


class TriggerAbort(BaseException):
    """Abort the current trigger invocation.

    Derived from BaseException so that ``except Exception`` blocks in
    user code between the wrapper and the engine do not intercept it.
    """

    def __init__(self, name: str, msg: str) -> None:
        super().__init__(f'trigger {name!r}: {msg}')
        self.name = name


class TriggerWrapper:
    """Invoke a trigger callable and convert its row to a datum.

    *func* receives the trigger context built from the raw call
    information by *context_factory* and returns the resulting row.
    *into_datum* converts that row, returning None when the row cannot
    be represented.  Every failure aborts the invocation with
    :class:`TriggerAbort`.
    """

    def __init__(
        self,
        func: Callable[[Any], Any],
        *,
        into_datum: Callable[[Any], Optional[Any]],
        context_factory: Optional[Callable[[Any], Any]] = None,
        name: Optional[str] = None,
    ) -> None:
        self.func = func
        self.into_datum = into_datum
        self.context_factory = context_factory
        self.name = name if name is not None else func.__name__

    @property
    def symbol(self) -> str:
        return f'{self.name}_wrapper'

    @property
    def finfo_symbol(self) -> str:
        return f'pg_finfo_{self.symbol}'

    def __call__(self, fcinfo: Any) -> Any:
        if self.context_factory is not None:
            try:
                context = self.context_factory(fcinfo)
            except Exception as e:
                raise TriggerAbort(
                    self.name,
                    f'could not build the trigger context: {e}') from e
        else:
            context = fcinfo

        try:
            row = self.func(context)
        except Exception as e:
            raise TriggerAbort(self.name, f'trigger failed: {e}') from e

        datum = self.into_datum(row)
        if datum is None:
            raise TriggerAbort(
                self.name, 'could not convert the returned row to a datum')
        return datum

    def __repr__(self) -> str:
        return f'<TriggerWrapper {self.symbol}>'


def trigger_from_function(
    func: Callable[[Any], Any],
    *,
    module_path: str,
    into_datum: Callable[[Any], Optional[Any]],
    file: Optional[str] = None,
    line: Optional[int] = None,
    schema: Optional[str] = None,
    to_sql_config: ToSqlConfig = ToSqlConfig(),
    context_factory: Optional[Callable[[Any], Any]] = None,
) -> Tuple[TriggerEntity, TriggerWrapper]:
    """Build the registration entity and the wrapper for *func*.

    The source location defaults to where *func* is defined.
    """
    if file is None:
        file = inspect.getsourcefile(func)
    if line is None:
        code = getattr(func, '__code__', None)
        if code is not None:
            line = code.co_firstlineno

    name = func.__name__
    entity = TriggerEntity(
        function_name=name,
        module_path=module_path,
        file=file,
        line=line,
        schema=schema,
        to_sql_config=to_sql_config,
    )
    wrapper = TriggerWrapper(
        func,
        into_datum=into_datum,
        context_factory=context_factory,
        name=name,
    )
    return entity, wrapper


def render_trigger(trigger: TriggerEntity, ctx: RenderContext) -> str:
    config = trigger.to_sql_config
    if not config.enabled:
        return ''

    assert trigger.full_path is not None
    header = header_comment(trigger, trigger.full_path)

    if config.content is not None:
        content = config.content.replace(
            FUNCTION_NAME_PLACEHOLDER, trigger.wrapper_name)
        sql = header + content.strip('\n')
    else:
        with errors.ensure_source(
            trigger.qualified_name, trigger.file, trigger.line
        ):
            check_identifier(trigger.function_name, 'trigger function')
        name = (
            ctx.graph.schema_prefix_for(trigger)
            + qi(trigger.function_name, force=True)
        )
        sql = (
            f'{header}'
            f'CREATE FUNCTION {name}()\n'
            f'\tRETURNS TRIGGER\n'
            f'\tLANGUAGE c\n'
            f"\tAS '{ctx.module_pathname}', '{trigger.wrapper_name}';"
        )

    logger.debug('rendered trigger %s', trigger.qualified_name,
                 extra={'sql': sql})
    return sql
