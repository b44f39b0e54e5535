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


"""PostgreSQL keyword categories, as listed in src/include/parser/kwlist.h.

Only the keyword categories that affect identifier quoting are included.
"""

from __future__ import annotations


UNRESERVED_KEYWORD = 'UNRESERVED_KEYWORD'
COL_NAME_KEYWORD = 'COL_NAME_KEYWORD'
TYPE_FUNC_NAME_KEYWORD = 'TYPE_FUNC_NAME_KEYWORD'
RESERVED_KEYWORD = 'RESERVED_KEYWORD'


by_type = {
    RESERVED_KEYWORD: frozenset((
        'all', 'analyse', 'analyze', 'and', 'any', 'array', 'as', 'asc',
        'asymmetric', 'both', 'case', 'cast', 'check', 'collate', 'column',
        'constraint', 'create', 'current_catalog', 'current_date',
        'current_role', 'current_time', 'current_timestamp',
        'current_user', 'default', 'deferrable', 'desc', 'distinct', 'do',
        'else', 'end', 'except', 'false', 'fetch', 'for', 'foreign', 'from',
        'grant', 'group', 'having', 'in', 'initially', 'intersect', 'into',
        'lateral', 'leading', 'limit', 'localtime', 'localtimestamp', 'not',
        'null', 'offset', 'on', 'only', 'or', 'order', 'placing', 'primary',
        'references', 'returning', 'select', 'session_user', 'some',
        'symmetric', 'table', 'then', 'to', 'trailing', 'true', 'union',
        'unique', 'user', 'using', 'variadic', 'when', 'where', 'window',
        'with',
    )),
    TYPE_FUNC_NAME_KEYWORD: frozenset((
        'authorization', 'binary', 'collation', 'concurrently', 'cross',
        'current_schema', 'freeze', 'full', 'ilike', 'inner', 'is', 'isnull',
        'join', 'left', 'like', 'natural', 'notnull', 'outer', 'overlaps',
        'right', 'similar', 'tablesample', 'verbose',
    )),
    COL_NAME_KEYWORD: frozenset((
        'between', 'bigint', 'bit', 'boolean', 'char', 'character',
        'coalesce', 'dec', 'decimal', 'exists', 'extract', 'float',
        'greatest', 'grouping', 'inout', 'int', 'integer', 'interval',
        'least', 'national', 'nchar', 'none', 'normalize', 'nullif',
        'numeric', 'out', 'overlay', 'position', 'precision', 'real', 'row',
        'setof', 'smallint', 'substring', 'time', 'timestamp', 'treat',
        'trim', 'values', 'varchar', 'xmlattributes', 'xmlconcat',
        'xmlelement', 'xmlexists', 'xmlforest', 'xmlnamespaces',
        'xmlparse', 'xmlpi', 'xmlroot', 'xmlserialize', 'xmltable',
    )),
}
