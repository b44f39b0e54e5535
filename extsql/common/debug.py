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


"""Debug flags and output facilities.

An example code using this module:

    if debug.flags.sqlgraph_render:
        debug.header('SQL')
        debug.print(sql)

Use `debug.header()` and `debug.print()` functions as opposed to using
'print' built-in directly.  This gives us flexibility to redirect debug
output if needed.
"""


from __future__ import annotations

import builtins
import os
import warnings

# Don't import anything from "extsql.*" as it will wreck coverage.


__all__ = ()  # Don't.


class FlagsMeta(type):
    def __new__(mcls, name, bases, dct):
        flags = {}
        for flagname, flag in dct.items():
            if not isinstance(flag, Flag):
                continue
            flag.name = flagname
            flags[flagname] = flag
            dct[flagname] = False

        dct['_items'] = flags
        return super().__new__(mcls, name, bases, dct)

    def __iter__(cls):
        return iter(cls._items.values())


class Flag:
    def __init__(self, *, doc: str):
        self.name = None
        self.doc = doc


class flags(metaclass=FlagsMeta):
    sqlgraph_classify = Flag(
        doc="Print return shapes as they are classified.")

    sqlgraph_graph = Flag(
        doc="Dump the entity graph (nodes and edges) after it is frozen.")

    sqlgraph_render = Flag(
        doc="Print generated SQL for every rendered entity.")


def header(*args):
    print('=' * 80)
    print(*args)
    print('=' * 80)


def print(*args):
    builtins.print(*args)


def init_debug_flags():
    prefix = 'EXTSQL_DEBUG_'

    for env_name, env_val in os.environ.items():
        if not env_name.startswith(prefix):
            continue

        name = env_name[len(prefix):].lower()
        if not hasattr(flags, name):
            warnings.warn(f'Unknown debug flag: {env_name!r}', stacklevel=2)
            continue

        if env_val.strip() in {'', '0'}:
            continue

        setattr(flags, name, True)


init_debug_flags()
