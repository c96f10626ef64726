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

from abc import ABC
from dataclasses import dataclass, field
from typing import Any, Sequence

from docapi.settings.defaults import MAX_INSERTED_IDS_IN_REPR


def _truncated_list_repr(items: Sequence[Any]) -> str:
    if len(items) > MAX_INSERTED_IDS_IN_REPR:
        return (
            f"[{', '.join(str(_itm) for _itm in items[:MAX_INSERTED_IDS_IN_REPR])} "
            f"... ({len(items)} total)]"
        )
    return str(list(items))


@dataclass
class OperationResult(ABC):
    """
    Class that represents the generic result of a single mutation operation.

    Attributes:
        raw_results: response/responses from the Data API call.
            Depending on the method being used, this list of raw responses
            can contain exactly one or a number of items.
    """

    raw_results: list[dict[str, Any]]

    def _piecewise_repr(self, pieces: list[str | None]) -> str:
        return f"{self.__class__.__name__}({', '.join(pc for pc in pieces if pc)})"


@dataclass
class CollectionDeleteResult(OperationResult):
    """
    Class that represents the result of delete operations on a collection.

    Attributes:
        deleted_count: number of deleted documents
        raw_results: response/responses from the Data API call.
            For `delete_many`, one item per request issued.
    """

    deleted_count: int

    def __repr__(self) -> str:
        return self._piecewise_repr(
            [
                f"deleted_count={self.deleted_count}",
                "raw_results=..." if self.raw_results is not None else None,
            ]
        )


@dataclass
class CollectionInsertOneResult(OperationResult):
    """
    Class that represents the result of insert_one operations on a collection.

    Attributes:
        raw_results: one-item list with the response from the Data API call
        inserted_id: the ID of the inserted document
    """

    inserted_id: Any

    def __repr__(self) -> str:
        return self._piecewise_repr(
            [
                f"inserted_id={self.inserted_id}",
                "raw_results=..." if self.raw_results is not None else None,
            ]
        )


@dataclass
class CollectionInsertManyResult(OperationResult):
    """
    Class that represents the result of insert_many operations on a collection.

    Attributes:
        raw_results: responses from the Data API calls, one per chunk
        inserted_ids: list of the IDs of the inserted documents. These come
            in the order of the input documents, even for unordered insertions.
    """

    inserted_ids: list[Any]

    @property
    def inserted_count(self) -> int:
        return len(self.inserted_ids)

    def __repr__(self) -> str:
        return self._piecewise_repr(
            [
                f"inserted_ids={_truncated_list_repr(self.inserted_ids)}",
                "raw_results=..." if self.raw_results is not None else None,
            ]
        )


@dataclass
class CollectionUpdateResult(OperationResult):
    """
    Class that represents the result of any update operation on a collection.

    Attributes:
        raw_results: responses from the Data API calls
        matched_count: the number of documents matching the filter
        modified_count: the number of documents actually modified
        upserted_count: the number of documents created by an upsert (0 or 1)
        upserted_id: the ID of the upserted document, if any
    """

    matched_count: int
    modified_count: int
    upserted_count: int = 0
    upserted_id: Any = None

    @property
    def update_info(self) -> dict[str, Any]:
        """
        A dictionary reporting about the update, with fields "n" (int),
        "updatedExisting" (bool), "ok" (float), "nModified" (int)
        and, if applicable, "upserted" with the ID of an upserted document.
        """
        info: dict[str, Any] = {
            "n": self.matched_count + self.upserted_count,
            "updatedExisting": self.modified_count > 0,
            "ok": 1.0,
            "nModified": self.modified_count,
        }
        if self.upserted_id is not None:
            info["upserted"] = self.upserted_id
        return info

    def __repr__(self) -> str:
        return self._piecewise_repr(
            [
                f"matched_count={self.matched_count}",
                f"modified_count={self.modified_count}",
                f"upserted_count={self.upserted_count}"
                if self.upserted_count
                else None,
                f"upserted_id={self.upserted_id}"
                if self.upserted_id is not None
                else None,
                "raw_results=..." if self.raw_results is not None else None,
            ]
        )


@dataclass
class TableInsertOneResult(OperationResult):
    """
    Class that represents the result of insert_one operations on a table.

    Attributes:
        raw_results: one-item list with the response from the Data API call
        inserted_id: the primary key of the inserted row in the form of a dict
        inserted_id_tuple: an ordered-tuple version of the same primary key
    """

    inserted_id: Any
    inserted_id_tuple: tuple[Any, ...]

    def __repr__(self) -> str:
        return self._piecewise_repr(
            [
                f"inserted_id={self.inserted_id}",
                f"inserted_id_tuple={self.inserted_id_tuple}",
                "raw_results=..." if self.raw_results is not None else None,
            ]
        )


@dataclass
class TableInsertManyResult(OperationResult):
    """
    Class that represents the result of insert_many operations on a table.

    Attributes:
        raw_results: responses from the Data API calls, one per chunk
        inserted_ids: list of the primary keys of the inserted rows,
            each in the form of a dictionary
        inserted_id_tuples: an ordered-tuple version of the same primary keys
    """

    inserted_ids: list[Any]
    inserted_id_tuples: list[tuple[Any, ...]] = field(default_factory=list)

    @property
    def inserted_count(self) -> int:
        return len(self.inserted_ids)

    def __repr__(self) -> str:
        return self._piecewise_repr(
            [
                f"inserted_ids={_truncated_list_repr(self.inserted_ids)}",
                f"inserted_id_tuples={_truncated_list_repr(self.inserted_id_tuples)}",
                "raw_results=..." if self.raw_results is not None else None,
            ]
        )
