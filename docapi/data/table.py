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

import logging
from typing import TYPE_CHECKING, Any, Generic, Iterable

from docapi.constants import ROW, FilterType, ProjectionType, SortType
from docapi.data.cumulative_operations import table_inserted_ids
from docapi.data.cursors.find_cursor import AsyncFindCursor, FindCursor
from docapi.data.data_source import _DataSourceHandle
from docapi.results import TableInsertManyResult, TableInsertOneResult
from docapi.utils.api_options import APIOptions, FullAPIOptions, default_api_path
from docapi.utils.unset import _UNSET, UnsetType

if TYPE_CHECKING:
    from docapi.data.database import AsyncDatabase, Database

logger = logging.getLogger(__name__)


class _TableCommons(_DataSourceHandle):
    """Payloads and result parsing shared by Table and AsyncTable."""

    def _parse_insert_one(self, io_response: dict[str, Any]) -> TableInsertOneResult:
        self._status_field(io_response, "insertedIds", "insertOne")
        inserted_ids = table_inserted_ids(io_response)
        if not inserted_ids:
            raise self._faulty_response("insertOne", io_response)
        inserted_id, inserted_id_tuple = inserted_ids[0]
        return TableInsertOneResult(
            raw_results=[io_response],
            inserted_id=inserted_id,
            inserted_id_tuple=inserted_id_tuple,
        )

    @staticmethod
    def _insert_many_result(
        inserted_pairs: list[Any], raw_results: list[dict[str, Any]]
    ) -> TableInsertManyResult:
        return TableInsertManyResult(
            raw_results=raw_results,
            inserted_ids=[id_dict for id_dict, _ in inserted_pairs],
            inserted_id_tuples=[id_tuple for _, id_tuple in inserted_pairs],
        )

    @staticmethod
    def _update_one_payload(
        *, filter: FilterType, update: dict[str, Any]
    ) -> dict[str, Any]:
        return {"updateOne": {"filter": filter, "update": update}}

    @staticmethod
    def _delete_payload(command_name: str, filter: FilterType) -> dict[str, Any]:
        return {command_name: {"filter": filter}}


class Table(Generic[ROW], _TableCommons):
    """
    A Data API table, the object to interact with the Data API for structured
    data. Rows are addressed by their primary key.
    This class has a synchronous interface.

    This class is not meant for direct instantiation by the user, rather
    it is obtained by invoking methods such as `get_table` of Database.

    Args:
        database: a Database object, instantiated earlier.
        name: the table name. This parameter should match an existing
            table on the database.
        keyspace: this is the keyspace to which the table belongs.
        api_options: the complete API Options for this instance.
    """

    def __init__(
        self,
        *,
        database: Database,
        name: str,
        keyspace: str | None,
        api_options: FullAPIOptions,
    ) -> None:
        self._database = database
        super().__init__(
            api_endpoint=database.api_endpoint,
            api_path=default_api_path(),
            keyspace=keyspace or database.keyspace,
            name=name,
            api_options=api_options,
        )

    @property
    def database(self) -> Database:
        """The Database this table belongs to."""
        return self._database

    def with_options(
        self: Table[ROW],
        *,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> Table[ROW]:
        """
        Create a clone of this table with some changed attributes.

        Args:
            api_options: any additional options to set for the clone, in the form of
                an APIOptions instance (where one can set just the needed attributes).

        Returns:
            a new Table instance.
        """
        return Table(
            database=self.database,
            name=self.name,
            keyspace=self.keyspace,
            api_options=self.api_options.with_override(api_options),
        )

    def to_async(
        self: Table[ROW],
        *,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> AsyncTable[ROW]:
        """Create an AsyncTable from this one, with an async database."""
        return AsyncTable(
            database=self.database.to_async(),
            name=self.name,
            keyspace=self.keyspace,
            api_options=self.api_options.with_override(api_options),
        )

    def find(
        self,
        filter: FilterType | None = None,
        *,
        projection: ProjectionType | None = None,
        skip: int | None = None,
        limit: int | None = None,
        include_similarity: bool | None = None,
        include_sort_vector: bool | None = None,
        sort: SortType | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> FindCursor[ROW, ROW]:
        """
        Find rows on the table matching the provided filters.

        The parameters have the same meaning as for `Collection.find`.

        Returns:
            a FindCursor object, that can be iterated over (and manipulated
            in several ways). Nothing is fetched until the cursor is used.

        Examples:
            >>> cursor = my_table.find({"match_id": "fight4"}, limit=2)
            >>> [row["round"] for row in cursor]
            [1, 2]
        """
        return FindCursor(
            query_engine=self._find_query_engine(),
            options=self._find_options(
                filter=filter,
                projection=projection,
                sort=sort,
                skip=skip,
                limit=limit,
                include_similarity=include_similarity,
                include_sort_vector=include_sort_vector,
            ),
            request_timeout_ms=self._cursor_request_timeout(
                request_timeout_ms, timeout_ms
            ),
        )

    def find_one(
        self,
        filter: FilterType | None = None,
        *,
        projection: ProjectionType | None = None,
        include_similarity: bool | None = None,
        sort: SortType | None = None,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> ROW | None:
        """
        Run a search, returning the first row in the table that matches
        the provided filters, if any is found (otherwise None).
        """
        fo_response = self._api_commander.request(
            payload=self._find_one_payload(
                filter=filter,
                projection=projection,
                sort=sort,
                include_similarity=include_similarity,
            ),
            timeout_context=self._single_request_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        return self._parse_find_one_response(fo_response)  # type: ignore[no-any-return]

    def insert_one(
        self,
        row: ROW,
        *,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> TableInsertOneResult:
        """
        Insert a single row in the table, with implied overwrite in case
        of primary key collision.

        Args:
            row: a dictionary expressing the row to insert. The primary key
                must be specified in full.
            general_method_timeout_ms: a timeout, in milliseconds, for the API request.
            request_timeout_ms: an alias for `general_method_timeout_ms`.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a TableInsertOneResult object, whose attributes are the primary key
            of the inserted row both in the form of a dictionary and of a tuple.
        """
        logger.info(f"insertOne on '{self.name}'")
        io_response = self._api_commander.request(
            payload={"insertOne": {"document": row}},
            timeout_context=self._single_request_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        logger.info(f"finished insertOne on '{self.name}'")
        return self._parse_insert_one(io_response)

    def insert_many(
        self,
        rows: Iterable[ROW],
        *,
        ordered: bool = False,
        chunk_size: int | None = None,
        concurrency: int | None = None,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> TableInsertManyResult:
        """
        Insert a number of rows into the table, with implied overwrite
        in case of primary key collision. This is not an atomic operation.

        The parameters, and the way failures are reported, are the same
        as for `Collection.insert_many`.

        Returns:
            a TableInsertManyResult object, listing the primary keys of
            the inserted rows.
        """
        _rows = list(rows)
        executor = self._insert_many_executor(
            ordered=ordered,
            chunk_size=chunk_size,
            concurrency=concurrency,
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
            id_extractor=table_inserted_ids,
            result_factory=self._insert_many_result,
        )
        return executor.run(_rows)

    def update_one(
        self,
        filter: FilterType,
        update: dict[str, Any],
        *,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        """
        Update a single row on the table, changing some or all of the columns,
        with the implicit behaviour of inserting a new row if no match is found.

        Args:
            filter: a predicate expressing the full primary key of the target row.
            update: the update prescription to apply to the row, e.g.
                {"$set": {"col": "value"}} or {"$unset": {"col": ""}}.
            general_method_timeout_ms: a timeout, in milliseconds, for the API request.
            request_timeout_ms: an alias for `general_method_timeout_ms`.
            timeout_ms: an alias for `general_method_timeout_ms`.
        """
        logger.info(f"updateOne on '{self.name}'")
        self._api_commander.request(
            payload=self._update_one_payload(filter=filter, update=update),
            timeout_context=self._single_request_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        logger.info(f"finished updateOne on '{self.name}'")

    def delete_one(
        self,
        filter: FilterType,
        *,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        """
        Delete a row, matching the provided value of the primary key.
        If no row is found with that primary key, the method does nothing.
        """
        logger.info(f"deleteOne on '{self.name}'")
        self._api_commander.request(
            payload=self._delete_payload("deleteOne", filter),
            timeout_context=self._single_request_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        logger.info(f"finished deleteOne on '{self.name}'")

    def delete_many(
        self,
        filter: FilterType,
        *,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        """
        Delete all rows matching a provided filter condition.
        On tables this is carried out by a single request.

        Args:
            filter: a filter dictionary to specify which row(s) must be deleted.
                An empty filter, `{}`, deletes all rows of the table.
            general_method_timeout_ms: a timeout, in milliseconds, for the API request.
            request_timeout_ms: an alias for `general_method_timeout_ms`.
            timeout_ms: an alias for `general_method_timeout_ms`.
        """
        logger.info(f"deleteMany on '{self.name}'")
        self._api_commander.request(
            payload=self._delete_payload("deleteMany", filter),
            timeout_context=self._single_request_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        logger.info(f"finished deleteMany on '{self.name}'")


class AsyncTable(Generic[ROW], _TableCommons):
    """
    A Data API table, the object to interact with the Data API for structured
    data. This class has an asynchronous interface for use with asyncio.

    This class is not meant for direct instantiation by the user, rather
    it is obtained by invoking methods such as `get_table` of AsyncDatabase.

    Args:
        database: an AsyncDatabase object, instantiated earlier.
        name: the table name.
        keyspace: this is the keyspace to which the table belongs.
        api_options: the complete API Options for this instance.
    """

    def __init__(
        self,
        *,
        database: AsyncDatabase,
        name: str,
        keyspace: str | None,
        api_options: FullAPIOptions,
    ) -> None:
        self._database = database
        super().__init__(
            api_endpoint=database.api_endpoint,
            api_path=default_api_path(),
            keyspace=keyspace or database.keyspace,
            name=name,
            api_options=api_options,
        )

    @property
    def database(self) -> AsyncDatabase:
        """The AsyncDatabase this table belongs to."""
        return self._database

    def with_options(
        self: AsyncTable[ROW],
        *,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> AsyncTable[ROW]:
        """Create a clone of this table with some changed API options."""
        return AsyncTable(
            database=self.database,
            name=self.name,
            keyspace=self.keyspace,
            api_options=self.api_options.with_override(api_options),
        )

    def to_sync(
        self: AsyncTable[ROW],
        *,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> Table[ROW]:
        """Create a Table from this one, with a sync database."""
        return Table(
            database=self.database.to_sync(),
            name=self.name,
            keyspace=self.keyspace,
            api_options=self.api_options.with_override(api_options),
        )

    def find(
        self,
        filter: FilterType | None = None,
        *,
        projection: ProjectionType | None = None,
        skip: int | None = None,
        limit: int | None = None,
        include_similarity: bool | None = None,
        include_sort_vector: bool | None = None,
        sort: SortType | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> AsyncFindCursor[ROW, ROW]:
        """
        Find rows on the table matching the provided filters.
        See `Table.find` for details.
        """
        return AsyncFindCursor(
            query_engine=self._find_query_engine(),
            options=self._find_options(
                filter=filter,
                projection=projection,
                sort=sort,
                skip=skip,
                limit=limit,
                include_similarity=include_similarity,
                include_sort_vector=include_sort_vector,
            ),
            request_timeout_ms=self._cursor_request_timeout(
                request_timeout_ms, timeout_ms
            ),
        )

    async def find_one(
        self,
        filter: FilterType | None = None,
        *,
        projection: ProjectionType | None = None,
        include_similarity: bool | None = None,
        sort: SortType | None = None,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> ROW | None:
        fo_response = await self._api_commander.async_request(
            payload=self._find_one_payload(
                filter=filter,
                projection=projection,
                sort=sort,
                include_similarity=include_similarity,
            ),
            timeout_context=self._single_request_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        return self._parse_find_one_response(fo_response)  # type: ignore[no-any-return]

    async def insert_one(
        self,
        row: ROW,
        *,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> TableInsertOneResult:
        logger.info(f"insertOne on '{self.name}'")
        io_response = await self._api_commander.async_request(
            payload={"insertOne": {"document": row}},
            timeout_context=self._single_request_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        logger.info(f"finished insertOne on '{self.name}'")
        return self._parse_insert_one(io_response)

    async def insert_many(
        self,
        rows: Iterable[ROW],
        *,
        ordered: bool = False,
        chunk_size: int | None = None,
        concurrency: int | None = None,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> TableInsertManyResult:
        """
        Insert a number of rows into the table. This is not an atomic operation.
        See `Table.insert_many` for details.
        """
        _rows = list(rows)
        executor = self._insert_many_executor(
            ordered=ordered,
            chunk_size=chunk_size,
            concurrency=concurrency,
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
            id_extractor=table_inserted_ids,
            result_factory=self._insert_many_result,
        )
        return await executor.async_run(_rows)

    async def update_one(
        self,
        filter: FilterType,
        update: dict[str, Any],
        *,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        logger.info(f"updateOne on '{self.name}'")
        await self._api_commander.async_request(
            payload=self._update_one_payload(filter=filter, update=update),
            timeout_context=self._single_request_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        logger.info(f"finished updateOne on '{self.name}'")

    async def delete_one(
        self,
        filter: FilterType,
        *,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        logger.info(f"deleteOne on '{self.name}'")
        await self._api_commander.async_request(
            payload=self._delete_payload("deleteOne", filter),
            timeout_context=self._single_request_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        logger.info(f"finished deleteOne on '{self.name}'")

    async def delete_many(
        self,
        filter: FilterType,
        *,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        logger.info(f"deleteMany on '{self.name}'")
        await self._api_commander.async_request(
            payload=self._delete_payload("deleteMany", filter),
            timeout_context=self._single_request_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        logger.info(f"finished deleteMany on '{self.name}'")


__all__ = [
    "AsyncTable",
    "Table",
]
