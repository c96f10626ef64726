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

"""
Operations spanning several Data API requests, with a single outcome.

An insert_many is split into chunks, sent either one after the other
(ordered) or by a pool of workers (unordered). A delete_many or update_many
is the same command repeated while the API says that more matching items
remain. In all cases, the API errors found in the responses ("soft" errors)
are collected and raised at the end, together with the partial result,
as one CumulativeOperationException. Any other failure (HTTP errors,
timeouts, malformed responses) is raised as it is, immediately.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, Generic, Iterator, List, Sequence, TypeVar

from docapi.exceptions import (
    CumulativeOperationException,
    DataAPIDetailedErrorDescriptor,
    MultiCallTimeoutManager,
    UnexpectedDataAPIResponseException,
    _TimeoutContext,
)
from docapi.results import OperationResult
from docapi.utils.api_commander import CommandRequester

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=OperationResult)

# (inserted IDs, raw responses) -> result
InsertManyResultFactory = Callable[[List[Any], List[Dict[str, Any]]], R]
# (summed counts, raw responses, last "status") -> result
MutationResultFactory = Callable[
    [Dict[str, int], List[Dict[str, Any]], Dict[str, Any]], R
]


def collection_inserted_ids(response: dict[str, Any]) -> list[Any]:
    """
    Read the IDs of the documents successfully inserted by one insertMany
    request. Per-document responses are preferred if present.
    """
    status = response.get("status") or {}
    if "documentResponses" in status:
        return [
            doc_resp.get("_id")
            for doc_resp in status["documentResponses"] or []
            if doc_resp.get("status") == "OK"
        ]
    return list(status.get("insertedIds") or [])


def table_inserted_ids(response: dict[str, Any]) -> list[Any]:
    """
    Read the primary keys of the rows successfully inserted by one insertMany
    request, as (dict, tuple) pairs. The API returns them as lists, whose
    positions map to the columns listed in "status.primaryKeySchema".
    """
    status = response.get("status") or {}
    pk_columns = list((status.get("primaryKeySchema") or {}).keys())
    id_lists = collection_inserted_ids(response)
    return [
        (dict(zip(pk_columns, id_list)), tuple(id_list)) for id_list in id_lists
    ]


class _CumulativeAccumulator:
    """
    The state shared by all sub-requests of a cumulative operation.
    Contributions are keyed by the index of the sub-request, so that the
    final result lists them in input order regardless of completion order;
    error descriptors are kept in the order they are merged.
    All merges happen under a lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items_by_index: dict[int, list[Any]] = {}
        self._raw_results_by_index: dict[int, dict[str, Any]] = {}
        self._counts: dict[str, int] = {}
        self._detailed_error_descriptors: list[DataAPIDetailedErrorDescriptor] = []

    def merge(
        self,
        index: int,
        *,
        command: dict[str, Any],
        raw_response: dict[str, Any],
        items: list[Any] | None = None,
        counts: dict[str, int] | None = None,
    ) -> bool:
        """Merge a sub-request's contribution. Return whether it had API errors."""
        detailed_descriptor: DataAPIDetailedErrorDescriptor | None = None
        if raw_response.get("errors"):
            detailed_descriptor = DataAPIDetailedErrorDescriptor.from_response(
                command=command,
                raw_response=raw_response,
            )
        with self._lock:
            self._raw_results_by_index[index] = raw_response
            if items is not None:
                self._items_by_index[index] = items
            for count_name, count_value in (counts or {}).items():
                self._counts[count_name] = self._counts.get(count_name, 0) + count_value
            if detailed_descriptor is not None:
                self._detailed_error_descriptors.append(detailed_descriptor)
        return detailed_descriptor is not None

    @property
    def items(self) -> list[Any]:
        with self._lock:
            return [
                item
                for index in sorted(self._items_by_index)
                for item in self._items_by_index[index]
            ]

    @property
    def raw_results(self) -> list[dict[str, Any]]:
        with self._lock:
            return [
                self._raw_results_by_index[index]
                for index in sorted(self._raw_results_by_index)
            ]

    @property
    def counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counts)

    @property
    def detailed_error_descriptors(self) -> list[DataAPIDetailedErrorDescriptor]:
        with self._lock:
            return list(self._detailed_error_descriptors)


class InsertManyExecutor(Generic[R]):
    """
    Insert a list of items in chunks, with one insertMany request per chunk.

    Args:
        requester: the object sending the commands (an APICommander).
        data_source_name: name of the collection/table, for logging.
        ordered: if True, chunks are sent one after the other and the process
            stops at the first chunk whose response has API errors. If False,
            all chunks are sent by up to `concurrency` concurrent workers.
        chunk_size: how many items to send in each request.
        concurrency: maximum number of requests in flight. Must be 1 if ordered.
        id_extractor: a function reading the inserted IDs from one response.
        result_factory: a function building the result (or partial result)
            from the inserted IDs and the list of raw responses.
        exception_class: the CumulativeOperationException subclass to raise.
        request_timeout_ms: the timeout for each single request.
        timeout_manager: the tracker of the overall method timeout.
    """

    def __init__(
        self,
        *,
        requester: CommandRequester,
        data_source_name: str,
        ordered: bool,
        chunk_size: int,
        concurrency: int,
        id_extractor: Callable[[dict[str, Any]], list[Any]],
        result_factory: InsertManyResultFactory[R],
        exception_class: type[CumulativeOperationException],
        request_timeout_ms: int | None = None,
        request_timeout_label: str | None = None,
        timeout_manager: MultiCallTimeoutManager | None = None,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("The chunk size for insert_many must be a positive integer.")
        if concurrency < 1:
            raise ValueError("The concurrency for insert_many must be a positive integer.")
        if ordered and concurrency > 1:
            raise ValueError("Cannot run ordered insert_many concurrently.")
        self.requester = requester
        self.data_source_name = data_source_name
        self.ordered = ordered
        self.chunk_size = chunk_size
        self.concurrency = concurrency
        self.id_extractor = id_extractor
        self.result_factory = result_factory
        self.exception_class = exception_class
        self.request_timeout_ms = request_timeout_ms
        self.request_timeout_label = request_timeout_label
        self.timeout_manager = timeout_manager or MultiCallTimeoutManager(
            overall_timeout_ms=None
        )

    def _chunks(self, items: Sequence[Any]) -> list[list[Any]]:
        return [
            list(items[i : i + self.chunk_size])
            for i in range(0, len(items), self.chunk_size)
        ]

    def _payload(self, chunk: list[Any]) -> dict[str, Any]:
        return {
            "insertMany": {
                "documents": chunk,
                "options": {
                    "ordered": self.ordered,
                    "returnDocumentResponses": True,
                },
            },
        }

    def _timeout_context(self) -> _TimeoutContext:
        return self.timeout_manager.remaining_timeout(
            cap_time_ms=self.request_timeout_ms,
            cap_timeout_label=self.request_timeout_label,
        )

    def _insert_chunk(
        self, accumulator: _CumulativeAccumulator, index: int, chunk: list[Any]
    ) -> bool:
        payload = self._payload(chunk)
        logger.info(f"insertMany(chunk) on '{self.data_source_name}'")
        response = self.requester.request(
            payload=payload,
            raise_api_errors=False,
            timeout_context=self._timeout_context(),
        )
        logger.info(f"finished insertMany(chunk) on '{self.data_source_name}'")
        return accumulator.merge(
            index,
            command=payload,
            raw_response=response,
            items=self.id_extractor(response),
        )

    async def _async_insert_chunk(
        self, accumulator: _CumulativeAccumulator, index: int, chunk: list[Any]
    ) -> bool:
        payload = self._payload(chunk)
        logger.info(f"insertMany(chunk) on '{self.data_source_name}'")
        response = await self.requester.async_request(
            payload=payload,
            raise_api_errors=False,
            timeout_context=self._timeout_context(),
        )
        logger.info(f"finished insertMany(chunk) on '{self.data_source_name}'")
        return accumulator.merge(
            index,
            command=payload,
            raw_response=response,
            items=self.id_extractor(response),
        )

    def _outcome(self, accumulator: _CumulativeAccumulator, n_items: int) -> R:
        result = self.result_factory(accumulator.items, accumulator.raw_results)
        detailed_error_descriptors = accumulator.detailed_error_descriptors
        if detailed_error_descriptors:
            logger.info(
                f"insert_many of {n_items} items in '{self.data_source_name}' "
                f"found {len(detailed_error_descriptors)} erroring response(s)"
            )
            raise self.exception_class.from_detailed_descriptors(
                detailed_error_descriptors,
                partial_result=result,
            )
        logger.info(f"finished inserting {n_items} items in '{self.data_source_name}'")
        return result

    def run(self, items: Sequence[Any]) -> R:
        """Run the insertion, return the full result or raise."""
        logger.info(f"inserting {len(items)} items in '{self.data_source_name}'")
        accumulator = _CumulativeAccumulator()
        chunks = self._chunks(items)
        if self.ordered or self.concurrency == 1 or len(chunks) <= 1:
            for index, chunk in enumerate(chunks):
                has_errors = self._insert_chunk(accumulator, index, chunk)
                if has_errors and self.ordered:
                    break
        else:
            chunk_iterator: Iterator[tuple[int, list[Any]]] = enumerate(chunks)
            iterator_lock = threading.Lock()
            abort = threading.Event()

            def _worker() -> None:
                while not abort.is_set():
                    with iterator_lock:
                        next_chunk = next(chunk_iterator, None)
                    if next_chunk is None:
                        return
                    index, chunk = next_chunk
                    try:
                        self._insert_chunk(accumulator, index, chunk)
                    except Exception:
                        abort.set()
                        raise

            n_workers = min(self.concurrency, len(chunks))
            with ThreadPoolExecutor(max_workers=n_workers) as executor:
                futures = [executor.submit(_worker) for _ in range(n_workers)]
                for future in as_completed(futures):
                    # the first failure in completion order is raised as is
                    future.result()
        return self._outcome(accumulator, len(items))

    async def async_run(self, items: Sequence[Any]) -> R:
        """Run the insertion, return the full result or raise (async version)."""
        logger.info(f"inserting {len(items)} items in '{self.data_source_name}'")
        accumulator = _CumulativeAccumulator()
        chunks = self._chunks(items)
        if self.ordered or self.concurrency == 1 or len(chunks) <= 1:
            for index, chunk in enumerate(chunks):
                has_errors = await self._async_insert_chunk(accumulator, index, chunk)
                if has_errors and self.ordered:
                    break
        else:
            chunk_iterator: Iterator[tuple[int, list[Any]]] = enumerate(chunks)

            async def _worker() -> None:
                # all workers draw from the same iterator
                for index, chunk in chunk_iterator:
                    await self._async_insert_chunk(accumulator, index, chunk)

            n_workers = min(self.concurrency, len(chunks))
            tasks = [asyncio.create_task(_worker()) for _ in range(n_workers)]
            try:
                await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
        return self._outcome(accumulator, len(items))


class PaginatedMutationExecutor(Generic[R]):
    """
    Run a "many" mutation command (deleteMany, updateMany) repeatedly, for as
    long as the API signals that more matching items are left, summing the
    counts reported by each response.

    The continuation signal is either a "status.moreData" flag (the same
    command is sent again) or a "status.nextPageState" token (sent back in
    "options.pageState" of the next command).

    Args:
        requester: the object sending the commands (an APICommander).
        data_source_name: name of the collection/table, for logging.
        command_name: e.g. "deleteMany".
        command_body: the body of the command, e.g. {"filter": {...}}.
        count_fields: names of the fields in "status" to sum, e.g. "deletedCount".
        continuation_field: either "moreData" or "nextPageState".
        result_factory: a function building the result (or partial result)
            from the summed counts, the raw responses and the last status.
        exception_class: the CumulativeOperationException subclass to raise.
        ordered: if True, stop at the first response with API errors. If False,
            keep going for as long as the API signals continuation.
        request_timeout_ms: the timeout for each single request.
        timeout_manager: the tracker of the overall method timeout.
    """

    def __init__(
        self,
        *,
        requester: CommandRequester,
        data_source_name: str,
        command_name: str,
        command_body: dict[str, Any],
        count_fields: Sequence[str],
        continuation_field: str,
        result_factory: MutationResultFactory[R],
        exception_class: type[CumulativeOperationException],
        ordered: bool = True,
        request_timeout_ms: int | None = None,
        request_timeout_label: str | None = None,
        timeout_manager: MultiCallTimeoutManager | None = None,
    ) -> None:
        if continuation_field not in {"moreData", "nextPageState"}:
            raise ValueError(f"Unknown continuation field '{continuation_field}'.")
        self.requester = requester
        self.data_source_name = data_source_name
        self.command_name = command_name
        self.command_body = command_body
        self.count_fields = list(count_fields)
        self.continuation_field = continuation_field
        self.result_factory = result_factory
        self.exception_class = exception_class
        self.ordered = ordered
        self.request_timeout_ms = request_timeout_ms
        self.request_timeout_label = request_timeout_label
        self.timeout_manager = timeout_manager or MultiCallTimeoutManager(
            overall_timeout_ms=None
        )

    def _payload(self, page_state: str | None) -> dict[str, Any]:
        if page_state is None:
            return {self.command_name: self.command_body}
        options = {**(self.command_body.get("options") or {}), "pageState": page_state}
        return {self.command_name: {**self.command_body, "options": options}}

    def _timeout_context(self) -> _TimeoutContext:
        return self.timeout_manager.remaining_timeout(
            cap_time_ms=self.request_timeout_ms,
            cap_timeout_label=self.request_timeout_label,
        )

    def _counts(self, response: dict[str, Any]) -> dict[str, int]:
        status = response.get("status") or {}
        missing_fields = [fld for fld in self.count_fields if fld not in status]
        if missing_fields and not response.get("errors"):
            raise UnexpectedDataAPIResponseException(
                text=(
                    f"Faulty response from {self.command_name} API command "
                    f"(missing: {', '.join(missing_fields)})."
                ),
                raw_response=response,
            )
        return {fld: int(status.get(fld) or 0) for fld in self.count_fields}

    def _next_page_state(self, response: dict[str, Any]) -> tuple[bool, str | None]:
        """Return whether to go on, and the page state to send, if any."""
        status = response.get("status") or {}
        if self.continuation_field == "moreData":
            return bool(status.get("moreData")), None
        next_page_state = status.get("nextPageState")
        return bool(next_page_state), next_page_state or None

    def _after_response(
        self,
        accumulator: _CumulativeAccumulator,
        index: int,
        payload: dict[str, Any],
        response: dict[str, Any],
    ) -> tuple[bool, str | None]:
        has_errors = accumulator.merge(
            index,
            command=payload,
            raw_response=response,
            counts=self._counts(response),
        )
        if has_errors and self.ordered:
            return False, None
        return self._next_page_state(response)

    def _outcome(
        self, accumulator: _CumulativeAccumulator, last_status: dict[str, Any]
    ) -> R:
        result = self.result_factory(
            accumulator.counts, accumulator.raw_results, last_status
        )
        detailed_error_descriptors = accumulator.detailed_error_descriptors
        if detailed_error_descriptors:
            raise self.exception_class.from_detailed_descriptors(
                detailed_error_descriptors,
                partial_result=result,
            )
        logger.info(f"finished {self.command_name} on '{self.data_source_name}'")
        return result

    def run(self) -> R:
        """Run the command until done, return the full result or raise."""
        logger.info(f"starting {self.command_name} on '{self.data_source_name}'")
        accumulator = _CumulativeAccumulator()
        page_state: str | None = None
        last_status: dict[str, Any] = {}
        index = 0
        must_proceed = True
        while must_proceed:
            payload = self._payload(page_state)
            logger.info(f"{self.command_name}(chunk) on '{self.data_source_name}'")
            response = self.requester.request(
                payload=payload,
                raise_api_errors=False,
                timeout_context=self._timeout_context(),
            )
            logger.info(
                f"finished {self.command_name}(chunk) on '{self.data_source_name}'"
            )
            last_status = response.get("status") or {}
            must_proceed, page_state = self._after_response(
                accumulator, index, payload, response
            )
            index += 1
        return self._outcome(accumulator, last_status)

    async def async_run(self) -> R:
        """Run the command until done, return the full result or raise (async version)."""
        logger.info(f"starting {self.command_name} on '{self.data_source_name}'")
        accumulator = _CumulativeAccumulator()
        page_state: str | None = None
        last_status: dict[str, Any] = {}
        index = 0
        must_proceed = True
        while must_proceed:
            payload = self._payload(page_state)
            logger.info(f"{self.command_name}(chunk) on '{self.data_source_name}'")
            response = await self.requester.async_request(
                payload=payload,
                raise_api_errors=False,
                timeout_context=self._timeout_context(),
            )
            logger.info(
                f"finished {self.command_name}(chunk) on '{self.data_source_name}'"
            )
            last_status = response.get("status") or {}
            must_proceed, page_state = self._after_response(
                accumulator, index, payload, response
            )
            index += 1
        return self._outcome(accumulator, last_status)
