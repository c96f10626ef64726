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

from docapi.constants import (
    DOC,
    FilterType,
    ProjectionType,
    SortType,
)
from docapi.data.cumulative_operations import (
    PaginatedMutationExecutor,
    collection_inserted_ids,
)
from docapi.data.cursors.find_cursor import AsyncFindCursor, FindCursor
from docapi.data.data_source import _DataSourceHandle
from docapi.exceptions import DeleteManyException, UpdateManyException
from docapi.results import (
    CollectionDeleteResult,
    CollectionInsertManyResult,
    CollectionInsertOneResult,
    CollectionUpdateResult,
)
from docapi.utils.api_options import APIOptions, FullAPIOptions, default_api_path
from docapi.utils.unset import _UNSET, UnsetType

if TYPE_CHECKING:
    from docapi.data.database import AsyncDatabase, Database

logger = logging.getLogger(__name__)


class _CollectionCommons(_DataSourceHandle):
    """Payloads and result parsing shared by Collection and AsyncCollection."""

    def _insert_one_payload(self, document: Any) -> dict[str, Any]:
        return {"insertOne": {"document": document}}

    def _parse_insert_one(self, io_response: dict[str, Any]) -> CollectionInsertOneResult:
        inserted_ids = self._status_field(io_response, "insertedIds", "insertOne")
        if not inserted_ids:
            raise self._faulty_response("insertOne", io_response)
        return CollectionInsertOneResult(
            raw_results=[io_response],
            inserted_id=inserted_ids[0],
        )

    @staticmethod
    def _insert_many_result(
        inserted_ids: list[Any], raw_results: list[dict[str, Any]]
    ) -> CollectionInsertManyResult:
        return CollectionInsertManyResult(
            raw_results=raw_results,
            inserted_ids=inserted_ids,
        )

    def _update_one_payload(
        self,
        *,
        filter: FilterType,
        update: dict[str, Any],
        sort: SortType | None,
        upsert: bool,
    ) -> dict[str, Any]:
        return {
            "updateOne": {
                k: v
                for k, v in {
                    "filter": filter,
                    "update": update,
                    "sort": sort,
                    "options": {"upsert": upsert},
                }.items()
                if v is not None
            },
        }

    def _parse_update_one(self, uo_response: dict[str, Any]) -> CollectionUpdateResult:
        uo_status = uo_response.get("status") or {}
        if "matchedCount" not in uo_status or "modifiedCount" not in uo_status:
            raise self._faulty_response("updateOne", uo_response)
        upserted_id = uo_status.get("upsertedId")
        return CollectionUpdateResult(
            raw_results=[uo_response],
            matched_count=uo_status["matchedCount"],
            modified_count=uo_status["modifiedCount"],
            upserted_count=1 if upserted_id is not None else 0,
            upserted_id=upserted_id,
        )

    def _update_many_executor(
        self,
        *,
        filter: FilterType,
        update: dict[str, Any],
        upsert: bool,
        general_method_timeout_ms: int | None,
        request_timeout_ms: int | None,
        timeout_ms: int | None,
    ) -> PaginatedMutationExecutor[CollectionUpdateResult]:
        timeout_manager, _request_timeout_ms, _rt_label = self._multi_request_timeouts(
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )

        def _result_factory(
            counts: dict[str, int],
            raw_results: list[dict[str, Any]],
            last_status: dict[str, Any],
        ) -> CollectionUpdateResult:
            upserted_id = last_status.get("upsertedId")
            return CollectionUpdateResult(
                raw_results=raw_results,
                matched_count=counts["matchedCount"],
                modified_count=counts["modifiedCount"],
                upserted_count=1 if upserted_id is not None else 0,
                upserted_id=upserted_id,
            )

        return PaginatedMutationExecutor(
            requester=self._api_commander,
            data_source_name=self.name,
            command_name="updateMany",
            command_body={
                "filter": filter,
                "update": update,
                "options": {"upsert": upsert},
            },
            count_fields=["matchedCount", "modifiedCount"],
            continuation_field="nextPageState",
            result_factory=_result_factory,
            exception_class=UpdateManyException,
            request_timeout_ms=_request_timeout_ms,
            request_timeout_label=_rt_label,
            timeout_manager=timeout_manager,
        )

    def _delete_one_payload(
        self, *, filter: FilterType, sort: SortType | None
    ) -> dict[str, Any]:
        return {
            "deleteOne": {
                k: v for k, v in {"filter": filter, "sort": sort}.items() if v is not None
            },
        }

    def _parse_delete_one(self, do_response: dict[str, Any]) -> CollectionDeleteResult:
        deleted_count = self._status_field(do_response, "deletedCount", "deleteOne")
        return CollectionDeleteResult(
            raw_results=[do_response],
            deleted_count=deleted_count,
        )

    def _delete_many_executor(
        self,
        *,
        filter: FilterType,
        general_method_timeout_ms: int | None,
        request_timeout_ms: int | None,
        timeout_ms: int | None,
    ) -> PaginatedMutationExecutor[CollectionDeleteResult]:
        timeout_manager, _request_timeout_ms, _rt_label = self._multi_request_timeouts(
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        return PaginatedMutationExecutor(
            requester=self._api_commander,
            data_source_name=self.name,
            command_name="deleteMany",
            command_body={"filter": filter},
            count_fields=["deletedCount"],
            continuation_field="moreData",
            result_factory=lambda counts, raw_results, _: CollectionDeleteResult(
                raw_results=raw_results,
                deleted_count=counts["deletedCount"],
            ),
            exception_class=DeleteManyException,
            request_timeout_ms=_request_timeout_ms,
            request_timeout_label=_rt_label,
            timeout_manager=timeout_manager,
        )


class Collection(Generic[DOC], _CollectionCommons):
    """
    A Data API collection, the object to interact with the Data API
    for unstructured (schemaless) data, especially for DDL operations.
    This class has a synchronous interface.

    This class is not meant for direct instantiation by the user, rather
    it is obtained by invoking methods such as `get_collection`
    of Database.

    Args:
        database: a Database object, instantiated earlier. This represents
            the database the collection belongs to.
        name: the collection name. This parameter should match an existing
            collection on the database.
        keyspace: this is the keyspace to which the collection belongs.
        api_options: the complete API Options for this instance.

    Examples:
        >>> from docapi import Database
        >>> my_db = Database("https://data-api.example.com", token="Tkn-...")
        >>> my_coll = my_db.get_collection("my_v_collection")
        >>> my_coll.insert_one({"seq": 1})
        CollectionInsertOneResult(inserted_id='b3a0...', raw_results=...)
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
        """The Database this collection belongs to."""
        return self._database

    def with_options(
        self: Collection[DOC],
        *,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> Collection[DOC]:
        """
        Create a clone of this collection with some changed attributes.

        Args:
            api_options: any additional options to set for the clone, in the form of
                an APIOptions instance (where one can set just the needed attributes).

        Returns:
            a new Collection instance.
        """
        return Collection(
            database=self.database,
            name=self.name,
            keyspace=self.keyspace,
            api_options=self.api_options.with_override(api_options),
        )

    def to_async(
        self: Collection[DOC],
        *,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> AsyncCollection[DOC]:
        """
        Create an AsyncCollection from this one. Save for the arguments
        explicitly provided as overrides, everything else is kept identical
        to this collection in the copy (the database is converted into
        an async object).
        """
        return AsyncCollection(
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
    ) -> FindCursor[DOC, DOC]:
        """
        Find documents on the collection, matching a certain provided filter.

        The method returns a cursor: no request is issued until the cursor
        is consumed. Pages of documents are then fetched one at a time,
        as needed, while iterating.

        Args:
            filter: a predicate expressed as a dictionary according to the
                Data API filter syntax. Examples are:
                    {}
                    {"name": "John"}
                    {"price": {"$lt": 100}}
            projection: it controls which parts of the document are returned.
                It can be an allow-list: `{"f1": True, "f2": True}`,
                or a deny-list: `{"fx": False, "fy": False}`.
            skip: with this integer parameter, what would be the first `skip`
                documents returned by the query are discarded.
            limit: this (integer) parameter sets a limit over how many documents
                are returned. Once `limit` is reached (or the cursor is exhausted
                for lack of matching documents), nothing more is returned.
            include_similarity: a boolean to request the numeric value of the
                similarity to be returned as an added "$similarity" key in each
                returned document. Requires a vector-search sort.
            include_sort_vector: a boolean to request the search query vector.
                If set to True, the vector can be read with the cursor's
                `get_sort_vector` method.
            sort: with this dictionary parameter one can control the order
                the documents are returned.
            request_timeout_ms: a timeout, in milliseconds, for each single one
                of the underlying HTTP requests used to fetch documents as the
                cursor is iterated over.
            timeout_ms: an alias for `request_timeout_ms`.

        Returns:
            a FindCursor object, that can be iterated over (and manipulated
            in several ways).

        Examples:
            >>> cursor = my_coll.find({"seq": {"$gt": 2}}, limit=3)
            >>> [doc["seq"] for doc in cursor]
            [3, 4, 5]
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
    ) -> DOC | None:
        """
        Run a search, returning the first document in the collection that matches
        provided filters, if any is found.

        Args:
            filter: a predicate expressed as a dictionary according to the
                Data API filter syntax.
            projection: it controls which parts of the document are returned.
            include_similarity: a boolean to request the numeric value of the
                similarity to be returned as an added "$similarity" key.
            sort: with this dictionary parameter one can control the order
                the documents are returned.
            general_method_timeout_ms: a timeout, in milliseconds, for the API request.
            request_timeout_ms: an alias for `general_method_timeout_ms`.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a dictionary expressing the required document, otherwise None.
        """
        fo_payload = self._find_one_payload(
            filter=filter,
            projection=projection,
            sort=sort,
            include_similarity=include_similarity,
        )
        fo_response = self._api_commander.request(
            payload=fo_payload,
            timeout_context=self._single_request_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        return self._parse_find_one_response(fo_response)  # type: ignore[no-any-return]

    def insert_one(
        self,
        document: DOC,
        *,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionInsertOneResult:
        """
        Insert a single document in the collection in an atomic operation.

        Args:
            document: the dictionary expressing the document to insert.
                The `_id` field of the document can be left out, in which
                case it will be created automatically.
            general_method_timeout_ms: a timeout, in milliseconds, for the API request.
            request_timeout_ms: an alias for `general_method_timeout_ms`.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a CollectionInsertOneResult object.
        """
        logger.info(f"inserting one document in '{self.name}'")
        io_response = self._api_commander.request(
            payload=self._insert_one_payload(document),
            timeout_context=self._single_request_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        logger.info(f"finished inserting one document in '{self.name}'")
        return self._parse_insert_one(io_response)

    def insert_many(
        self,
        documents: Iterable[DOC],
        *,
        ordered: bool = False,
        chunk_size: int | None = None,
        concurrency: int | None = None,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionInsertManyResult:
        """
        Insert a list of documents into the collection.
        This is not an atomic operation.

        Args:
            documents: an iterable of dictionaries, each a document to insert.
            ordered: if False (default), the insertions can occur in arbitrary order
                and possibly concurrently. If True, they are processed sequentially.
            chunk_size: how many documents to include in a single API request.
                Leave it unspecified to use the configured default.
            concurrency: maximum number of concurrent requests to the API at
                a given time. It cannot be more than one for ordered insertions.
            general_method_timeout_ms: a timeout, in milliseconds, for the whole
                requested operation (which may involve multiple API requests).
            request_timeout_ms: a timeout, in milliseconds, for each API request.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a CollectionInsertManyResult object.

        Note:
            If some of the documents cannot be inserted (e.g. because of
            a duplicate `_id`), an InsertManyException is raised once the
            operation is over. For ordered insertions this happens at the
            first failing chunk; unordered insertions go through all chunks
            first. In both cases the `partial_result` attribute of the
            exception lists the IDs that were successfully inserted.
        """
        _documents = list(documents)
        executor = self._insert_many_executor(
            ordered=ordered,
            chunk_size=chunk_size,
            concurrency=concurrency,
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
            id_extractor=collection_inserted_ids,
            result_factory=self._insert_many_result,
        )
        return executor.run(_documents)

    def update_one(
        self,
        filter: FilterType,
        update: dict[str, Any],
        *,
        sort: SortType | None = None,
        upsert: bool = False,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionUpdateResult:
        """
        Update a single document on the collection as requested.

        Args:
            filter: a predicate expressed as a dictionary according to the
                Data API filter syntax.
            update: the update prescription to apply to the document, expressed
                as a dictionary as per Data API syntax. Examples are:
                    {"$set": {"field": "value}}
                    {"$inc": {"counter": 10}}
            sort: with this dictionary parameter one can control the sorting
                order of the documents matching the filter, effectively
                determining what document will come first and hence be updated.
            upsert: this parameter controls the behavior in absence of matches.
                If True, a new document (resulting from applying the `update`
                to an empty document) is inserted if no matches are found.
            general_method_timeout_ms: a timeout, in milliseconds, for the API request.
            request_timeout_ms: an alias for `general_method_timeout_ms`.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a CollectionUpdateResult object summarizing the outcome of
            the update operation.
        """
        logger.info(f"calling updateOne on '{self.name}'")
        uo_response = self._api_commander.request(
            payload=self._update_one_payload(
                filter=filter, update=update, sort=sort, upsert=upsert
            ),
            timeout_context=self._single_request_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        logger.info(f"finished calling updateOne on '{self.name}'")
        return self._parse_update_one(uo_response)

    def update_many(
        self,
        filter: FilterType,
        update: dict[str, Any],
        *,
        upsert: bool = False,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionUpdateResult:
        """
        Apply an update operation to all documents matching a condition,
        optionally inserting one document in absence of matches.

        The Data API may update the matching documents in several steps:
        this method issues as many requests as needed, reporting the total
        counts in the result.

        Args:
            filter: a predicate expressed as a dictionary according to the
                Data API filter syntax.
            update: the update prescription to apply to the documents.
            upsert: if True, a new document is inserted if no matches are found.
            general_method_timeout_ms: a timeout, in milliseconds, for the whole
                requested operation (which may involve multiple API requests).
            request_timeout_ms: a timeout, in milliseconds, for each API request.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a CollectionUpdateResult object summarizing the outcome of
            the update operation.
        """
        return self._update_many_executor(
            filter=filter,
            update=update,
            upsert=upsert,
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        ).run()

    def delete_one(
        self,
        filter: FilterType,
        *,
        sort: SortType | None = None,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionDeleteResult:
        """
        Delete one document matching a provided filter.

        Args:
            filter: a predicate expressed as a dictionary according to the
                Data API filter syntax.
            sort: with this dictionary parameter one can control the sorting
                order of the documents matching the filter, effectively
                determining what document will come first and hence be deleted.
            general_method_timeout_ms: a timeout, in milliseconds, for the API request.
            request_timeout_ms: an alias for `general_method_timeout_ms`.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a CollectionDeleteResult object summarizing the outcome of the
            delete operation.
        """
        logger.info(f"calling deleteOne on '{self.name}'")
        do_response = self._api_commander.request(
            payload=self._delete_one_payload(filter=filter, sort=sort),
            timeout_context=self._single_request_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        logger.info(f"finished calling deleteOne on '{self.name}'")
        return self._parse_delete_one(do_response)

    def delete_many(
        self,
        filter: FilterType,
        *,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionDeleteResult:
        """
        Delete all documents matching a provided filter.

        Args:
            filter: a predicate expressed as a dictionary according to the
                Data API filter syntax. Passing an empty filter, `{}`,
                completely erases all contents of the collection.
            general_method_timeout_ms: a timeout, in milliseconds, for the whole
                requested operation (which may involve multiple API requests).
            request_timeout_ms: a timeout, in milliseconds, for each API request.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a CollectionDeleteResult object summarizing the outcome of the
            delete operation.

        Note:
            This operation is in general not atomic. Depending on the amount
            of matching documents, it can keep running (in a blocking way)
            for a macroscopic time. In that case, new documents that are
            meanwhile inserted (e.g. from another process/application) will be
            deleted during the execution of this method call until the
            collection is devoid of matches.
        """
        return self._delete_many_executor(
            filter=filter,
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        ).run()


class AsyncCollection(Generic[DOC], _CollectionCommons):
    """
    A Data API collection, the object to interact with the Data API
    for unstructured (schemaless) data.
    This class has an asynchronous interface for use with asyncio.

    This class is not meant for direct instantiation by the user, rather
    it is obtained by invoking methods such as `get_collection`
    of AsyncDatabase.

    Args:
        database: an AsyncDatabase object, instantiated earlier.
        name: the collection name.
        keyspace: this is the keyspace to which the collection belongs.
        api_options: the complete API Options for this instance.

    Examples:
        >>> from docapi import AsyncDatabase
        >>> my_async_db = AsyncDatabase("https://data-api.example.com", token="Tkn-...")
        >>> my_async_coll = my_async_db.get_collection("my_collection")
        >>> asyncio.run(my_async_coll.insert_one({"seq": 1}))
        CollectionInsertOneResult(inserted_id='9a2c...', raw_results=...)
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
        """The AsyncDatabase this collection belongs to."""
        return self._database

    def with_options(
        self: AsyncCollection[DOC],
        *,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> AsyncCollection[DOC]:
        """
        Create a clone of this collection with some changed attributes.

        Args:
            api_options: any additional options to set for the clone, in the form of
                an APIOptions instance (where one can set just the needed attributes).

        Returns:
            a new AsyncCollection instance.
        """
        return AsyncCollection(
            database=self.database,
            name=self.name,
            keyspace=self.keyspace,
            api_options=self.api_options.with_override(api_options),
        )

    def to_sync(
        self: AsyncCollection[DOC],
        *,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> Collection[DOC]:
        """
        Create a Collection from this one. Save for the arguments
        explicitly provided as overrides, everything else is kept identical
        to this collection in the copy (the database is converted into
        a sync object).
        """
        return Collection(
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
    ) -> AsyncFindCursor[DOC, DOC]:
        """
        Find documents on the collection, matching a certain provided filter.

        Creating the cursor involves no I/O: pages of documents are fetched
        as the cursor is consumed, e.g. with `async for`.

        Args:
            filter: a predicate expressed as a dictionary according to the
                Data API filter syntax.
            projection: it controls which parts of the document are returned.
            skip: with this integer parameter, what would be the first `skip`
                documents returned by the query are discarded.
            limit: this (integer) parameter sets a limit over how many documents
                are returned.
            include_similarity: a boolean to request the numeric value of the
                similarity to be returned as an added "$similarity" key.
            include_sort_vector: a boolean to request the search query vector.
            sort: with this dictionary parameter one can control the order
                the documents are returned.
            request_timeout_ms: a timeout, in milliseconds, for each single one
                of the underlying HTTP requests.
            timeout_ms: an alias for `request_timeout_ms`.

        Returns:
            an AsyncFindCursor object.

        Examples:
            >>> async def print_seqs(acol: AsyncCollection) -> None:
            ...     async for doc in acol.find({}, limit=2):
            ...         print(doc["seq"])
            ...
            >>> asyncio.run(print_seqs(my_async_coll))
            1
            2
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
    ) -> DOC | None:
        """
        Run a search, returning the first document in the collection that matches
        provided filters, if any is found.

        See `Collection.find_one` for a description of the parameters.
        """
        fo_payload = self._find_one_payload(
            filter=filter,
            projection=projection,
            sort=sort,
            include_similarity=include_similarity,
        )
        fo_response = await self._api_commander.async_request(
            payload=fo_payload,
            timeout_context=self._single_request_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        return self._parse_find_one_response(fo_response)  # type: ignore[no-any-return]

    async def insert_one(
        self,
        document: DOC,
        *,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionInsertOneResult:
        """
        Insert a single document in the collection in an atomic operation.

        See `Collection.insert_one` for a description of the parameters.
        """
        logger.info(f"inserting one document in '{self.name}'")
        io_response = await self._api_commander.async_request(
            payload=self._insert_one_payload(document),
            timeout_context=self._single_request_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        logger.info(f"finished inserting one document in '{self.name}'")
        return self._parse_insert_one(io_response)

    async def insert_many(
        self,
        documents: Iterable[DOC],
        *,
        ordered: bool = False,
        chunk_size: int | None = None,
        concurrency: int | None = None,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionInsertManyResult:
        """
        Insert a list of documents into the collection.
        This is not an atomic operation.

        Unordered insertions run as up to `concurrency` concurrent tasks
        on the running event loop. See `Collection.insert_many` for
        a description of the parameters and of the failure modes.
        """
        _documents = list(documents)
        executor = self._insert_many_executor(
            ordered=ordered,
            chunk_size=chunk_size,
            concurrency=concurrency,
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
            id_extractor=collection_inserted_ids,
            result_factory=self._insert_many_result,
        )
        return await executor.async_run(_documents)

    async def update_one(
        self,
        filter: FilterType,
        update: dict[str, Any],
        *,
        sort: SortType | None = None,
        upsert: bool = False,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionUpdateResult:
        """
        Update a single document on the collection as requested.

        See `Collection.update_one` for a description of the parameters.
        """
        logger.info(f"calling updateOne on '{self.name}'")
        uo_response = await self._api_commander.async_request(
            payload=self._update_one_payload(
                filter=filter, update=update, sort=sort, upsert=upsert
            ),
            timeout_context=self._single_request_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        logger.info(f"finished calling updateOne on '{self.name}'")
        return self._parse_update_one(uo_response)

    async def update_many(
        self,
        filter: FilterType,
        update: dict[str, Any],
        *,
        upsert: bool = False,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionUpdateResult:
        """
        Apply an update operation to all documents matching a condition,
        issuing as many requests as needed.

        See `Collection.update_many` for a description of the parameters.
        """
        return await self._update_many_executor(
            filter=filter,
            update=update,
            upsert=upsert,
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        ).async_run()

    async def delete_one(
        self,
        filter: FilterType,
        *,
        sort: SortType | None = None,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionDeleteResult:
        """
        Delete one document matching a provided filter.

        See `Collection.delete_one` for a description of the parameters.
        """
        logger.info(f"calling deleteOne on '{self.name}'")
        do_response = await self._api_commander.async_request(
            payload=self._delete_one_payload(filter=filter, sort=sort),
            timeout_context=self._single_request_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        logger.info(f"finished calling deleteOne on '{self.name}'")
        return self._parse_delete_one(do_response)

    async def delete_many(
        self,
        filter: FilterType,
        *,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionDeleteResult:
        """
        Delete all documents matching a provided filter.

        See `Collection.delete_many` for a description of the parameters.
        """
        return await self._delete_many_executor(
            filter=filter,
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        ).async_run()


__all__ = [
    "AsyncCollection",
    "Collection",
]
