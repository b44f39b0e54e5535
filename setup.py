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



import pathlib

import setuptools


ROOT_PATH = pathlib.Path(__file__).parent.resolve()

RUNTIME_DEPS = [
    'click~=8.1',
    'immutables>=0.18',
]

TEST_DEPS = [
    'pytest>=7.0',
]


def _version():
    from extsql import buildmeta
    return buildmeta.get_version()


setuptools.setup(
    name='extsql',
    version=_version(),
    description='Entity-graph compiler for extension SQL scripts',
    license='Apache-2.0',
    python_requires='>=3.10',
    packages=setuptools.find_packages(
        where=str(ROOT_PATH), include=['extsql', 'extsql.*']),
    install_requires=RUNTIME_DEPS,
    extras_require={
        'test': TEST_DEPS,
    },
    entry_points={
        'console_scripts': [
            'extsql = extsql.tools.cli:main',
        ],
    },
)
