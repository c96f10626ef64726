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

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Optional, Tuple, TypeVar, Union

DefaultDocumentType = Dict[str, Any]
DefaultRowType = Dict[str, Any]
ProjectionType = Union[Iterable[str], Dict[str, Union[bool, Dict[str, Any]]]]
SortType = Dict[str, Any]
FilterType = Dict[str, Any]
CallerType = Tuple[Optional[str], Optional[str]]


ROW = TypeVar("ROW")
DOC = TypeVar("DOC")
T = TypeVar("T")
TNew = TypeVar("TNew")

MapperType = Callable[[Any], Any]


def normalize_optional_projection(
    projection: ProjectionType | None,
) -> dict[str, bool | dict[str, Any]] | None:
    if projection:
        if isinstance(projection, dict):
            # already a dictionary
            return projection
        else:
            # an iterable over strings: coerce to allow-list projection
            return {field: True for field in projection}
    else:
        return None


class SortMode:
    """
    Admitted values for the `sort` parameter in the find methods,
    e.g. `sort={"field": SortMode.ASCENDING}`.
    """

    def __init__(self) -> None:
        raise NotImplementedError

    ASCENDING = 1
    DESCENDING = -1
