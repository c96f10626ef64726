# Copyright DataStax, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import re
from os import path

from setuptools import find_packages, setup

this_directory = path.abspath(path.dirname(__file__))
with open(path.join(this_directory, "README.MD"), encoding="utf-8") as f:
    long_description = f.read()

# read the version without importing the package (and its dependencies)
with open(path.join(this_directory, "docapi", "__init__.py"), encoding="utf-8") as f:
    version_match = re.search(r'^__version__: str = "([^"]+)"', f.read(), re.M)
if version_match is None:
    raise RuntimeError("Cannot find the package version.")
__version__ = version_match.group(1)

install_requires = [
    req_line.strip()
    for req_line in open(path.join(this_directory, "requirements.txt")).readlines()
    if req_line.strip() != ""
    if req_line.strip()[0] != "#"
    if "-e ." not in req_line
]

setup(
    name="docapi",
    packages=find_packages(include=["docapi", "docapi.*"]),
    package_data={"docapi": ["py.typed"]},
    version=__version__,
    license="Apache license 2.0",
    description="A Python client for document and table Data APIs over HTTP",
    long_description=long_description,
    long_description_content_type="text/markdown",
    keywords=["Data API", "documents", "tables"],
    python_requires=">=3.8",
    install_requires=install_requires,
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "pytest-httpserver>=1.0",
            "werkzeug",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
