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

import inspect
import logging
from typing import Any, Awaitable, Callable, Generic, Union, cast

from docapi.data.cursors.cursor import (
    TNEW,
    TRAW,
    AbstractCursor,
    CursorState,
    T,
)
from docapi.exceptions import MultiCallTimeoutManager

logger = logging.getLogger(__name__)


class FindCursor(Generic[TRAW, T], AbstractCursor[TRAW]):
    """
    A synchronous cursor over documents (or rows), as returned by a `find`
    invocation on a Collection or a Table. A cursor can be iterated over,
    materialized into a list, and queried/manipulated in various ways.

    Configuration methods (`filter`, `sort`, `project`, `limit`, `skip`,
    `include_similarity`, `include_sort_vector`, `map`) modify the cursor
    in place and return it, to allow chaining; they are only allowed while
    the cursor is idle, i.e. before any page has been fetched.

    A cursor has two type parameters: TRAW and T. The first is the type of the "raw"
    items as they are obtained from the Data API, the second is the type of the
    items after the optional mapping function (see the `.map()` method). If there is
    no mapping, TRAW = T. Consuming a cursor returns items of type T, except for
    the `consume_buffer` primitive that draws directly from the buffer and always
    returns items of type TRAW.

    Example:
        >>> cursor = collection.find({}, limit=3).map(lambda doc: doc["seq"])
        >>> for seq in cursor:
        ...     print(seq)
        ...
        1
        4
        15
        >>> cursor.state
        <CursorState.CLOSED: 'closed'>
    """

    def _fetch_next_page(self, timeout_manager: MultiCallTimeoutManager | None) -> None:
        timeout_context = self._page_timeout_context(timeout_manager)
        self._state = CursorState.STARTED
        try:
            items, next_page_state, status = self._query_engine.fetch_page(
                options=self._options,
                page_state=self._page_state,
                request_sort_vector=self._requests_sort_vector,
                timeout_context=timeout_context,
            )
        except Exception:
            self.close()
            raise
        self._ingest_page(items, next_page_state, status)

    def _try_fill_buffer(
        self, timeout_manager: MultiCallTimeoutManager | None = None
    ) -> bool:
        """
        Fetch pages until the buffer has something, or there is nothing more
        to fetch. Return whether the buffer is non-empty.
        """
        while not self._buffer:
            if self._state == CursorState.CLOSED or self._page_state.is_exhausted:
                return False
            previous_page_state = self._page_state
            self._fetch_next_page(timeout_manager)
            if self._page_made_no_progress(previous_page_state):
                return False
        return True

    def _next_item(self, timeout_manager: MultiCallTimeoutManager | None = None) -> T:
        if self._state == CursorState.CLOSED:
            raise StopIteration
        if not self._try_fill_buffer(timeout_manager):
            self.close()
            raise StopIteration
        return cast(T, self._pop_and_map())

    def __iter__(self: FindCursor[TRAW, T]) -> FindCursor[TRAW, T]:
        return self

    def __next__(self) -> T:
        return self._next_item()

    def map(self, mapper: Callable[[T], TNEW]) -> FindCursor[TRAW, TNEW]:
        """
        Set a mapping function for the items yielded by this cursor.
        If a mapping is already set, the new one is applied after it (composition).

        Only allowed on an idle cursor. This is an in-place modification:
        the cursor itself is returned, with its item type changed.

        Args:
            mapper: a function taking an item (as returned so far) and returning
                the new item. It may return None, which is a legitimate item.

        Example:
            >>> cursor = collection.find({}).map(lambda doc: doc["seq"])
            >>> cursor.map(lambda seq: seq * 10).to_list()
            [10, 40, 150]
        """
        self._compose_mapper(mapper)
        return cast(FindCursor[TRAW, TNEW], self)

    def clone(self) -> FindCursor[TRAW, TRAW]:
        """
        Create a copy of this cursor with the same configuration (filter, sort,
        projection, limit, ...), but no mapping, in idle state and with
        nothing consumed or buffered.
        """
        return FindCursor(
            query_engine=self._query_engine,
            options=self._options,
            request_timeout_ms=self._request_timeout_ms,
        )

    def has_next(self) -> bool:
        """
        Whether the cursor actually has more items to return.

        This method can trigger the fetch of a new page, if the current buffer is
        empty, but never consumes items. It always returns False on a closed cursor.
        If no more items are available, the cursor is closed.
        """

        if self._state == CursorState.CLOSED:
            return False
        if self._try_fill_buffer():
            return True
        self.close()
        return False

    def to_list(
        self,
        *,
        general_method_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> list[T]:
        """
        Materialize all items that remain to be consumed from a cursor into a list.
        The cursor is closed when this method returns (or raises).

        If the cursor is idle, the result will be the whole set of items returned
        by the `find` operation; otherwise, the items already consumed by the cursor
        will not be in the resulting list.

        Args:
            general_method_timeout_ms: a timeout, in milliseconds, for the whole
                duration of this method. If not provided, there is no such timeout.
                Note that the per-request timeout set on the cursor still applies.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a list of items (possibly transformed by the mapping function).
        """

        timeout_manager = self._method_timeout_manager(
            general_method_timeout_ms, timeout_ms
        )
        items: list[T] = []
        try:
            while True:
                try:
                    items.append(self._next_item(timeout_manager))
                except StopIteration:
                    break
        finally:
            self.close()
        return items

    def for_each(
        self,
        function: Callable[[T], bool | None],
        *,
        general_method_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        """
        Consume the remaining items in the cursor, invoking a provided callback
        function on each of them. The cursor is closed when this method returns.

        Args:
            function: a callback function whose only parameter is of the type returned
                by the cursor. If the callback returns `False`, the iteration
                stops early (the rest of the results are discarded).
            general_method_timeout_ms: a timeout, in milliseconds, for the whole
                duration of this method. If not provided, there is no such timeout.
                Note that the per-request timeout set on the cursor still applies.
            timeout_ms: an alias for `general_method_timeout_ms`.
        """

        timeout_manager = self._method_timeout_manager(
            general_method_timeout_ms, timeout_ms
        )
        try:
            while True:
                try:
                    item = self._next_item(timeout_manager)
                except StopIteration:
                    break
                if function(item) is False:
                    break
        finally:
            self.close()

    def get_sort_vector(self) -> list[float] | str | None:
        """
        Return the vector used in the sort clause of the `find` that originated
        this cursor, as returned by the Data API.

        If the cursor is not configured with `include_sort_vector`, return None
        without any API call. Otherwise, if no page has been fetched yet, this
        triggers the fetch of the first page (without consuming any item).

        Returns:
            the sort vector (list of numbers, or a string if binary-encoded),
            or None.
        """

        if not self._options.include_sort_vector:
            return None
        if self._pages_retrieved == 0:
            self.has_next()
        return self._sort_vector


class AsyncFindCursor(Generic[TRAW, T], AbstractCursor[TRAW]):
    """
    An asynchronous cursor over documents (or rows), as returned by a `find`
    invocation on an AsyncCollection or an AsyncTable. It mirrors `FindCursor`,
    with the methods that may issue API requests being coroutines.

    Example:
        >>> cursor = async_collection.find({}, limit=3)
        >>> async for doc in cursor:
        ...     print(doc["seq"])
        ...
        1
        4
        15
        >>> await async_collection.find({}).map(lambda doc: doc["seq"]).to_list()
        [1, 4, 15, 22, 11]
    """

    async def _fetch_next_page(
        self, timeout_manager: MultiCallTimeoutManager | None
    ) -> None:
        timeout_context = self._page_timeout_context(timeout_manager)
        self._state = CursorState.STARTED
        try:
            items, next_page_state, status = await self._query_engine.async_fetch_page(
                options=self._options,
                page_state=self._page_state,
                request_sort_vector=self._requests_sort_vector,
                timeout_context=timeout_context,
            )
        except Exception:
            self.close()
            raise
        self._ingest_page(items, next_page_state, status)

    async def _try_fill_buffer(
        self, timeout_manager: MultiCallTimeoutManager | None = None
    ) -> bool:
        while not self._buffer:
            if self._state == CursorState.CLOSED or self._page_state.is_exhausted:
                return False
            previous_page_state = self._page_state
            await self._fetch_next_page(timeout_manager)
            if self._page_made_no_progress(previous_page_state):
                return False
        return True

    async def _next_item(
        self, timeout_manager: MultiCallTimeoutManager | None = None
    ) -> T:
        if self._state == CursorState.CLOSED:
            raise StopAsyncIteration
        if not await self._try_fill_buffer(timeout_manager):
            self.close()
            raise StopAsyncIteration
        return cast(T, self._pop_and_map())

    def __aiter__(self: AsyncFindCursor[TRAW, T]) -> AsyncFindCursor[TRAW, T]:
        return self

    async def __anext__(self) -> T:
        return await self._next_item()

    def map(self, mapper: Callable[[T], TNEW]) -> AsyncFindCursor[TRAW, TNEW]:
        """
        Set a mapping function for the items yielded by this cursor,
        composing it after any mapping already set.
        Only allowed on an idle cursor; returns the cursor itself.
        """
        self._compose_mapper(mapper)
        return cast(AsyncFindCursor[TRAW, TNEW], self)

    def clone(self) -> AsyncFindCursor[TRAW, TRAW]:
        """
        Create a copy of this cursor with the same configuration, but no mapping,
        in idle state and with nothing consumed or buffered.
        """
        return AsyncFindCursor(
            query_engine=self._query_engine,
            options=self._options,
            request_timeout_ms=self._request_timeout_ms,
        )

    async def has_next(self) -> bool:
        """
        Whether the cursor actually has more items to return.
        May fetch a new page into the buffer, never consumes items.
        Closes the cursor if no more items are available.
        """

        if self._state == CursorState.CLOSED:
            return False
        if await self._try_fill_buffer():
            return True
        self.close()
        return False

    async def to_list(
        self,
        *,
        general_method_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> list[T]:
        """
        Materialize all items that remain to be consumed from a cursor into a list.
        The cursor is closed when this method returns (or raises).

        Args:
            general_method_timeout_ms: a timeout, in milliseconds, for the whole
                duration of this method. If not provided, there is no such timeout.
                Note that the per-request timeout set on the cursor still applies.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a list of items (possibly transformed by the mapping function).
        """

        timeout_manager = self._method_timeout_manager(
            general_method_timeout_ms, timeout_ms
        )
        items: list[T] = []
        try:
            while True:
                try:
                    items.append(await self._next_item(timeout_manager))
                except StopAsyncIteration:
                    break
        finally:
            self.close()
        return items

    async def for_each(
        self,
        function: Union[
            Callable[[T], Union[bool, None]],
            Callable[[T], Awaitable[Union[bool, None]]],
        ],
        *,
        general_method_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        """
        Consume the remaining items in the cursor, invoking a provided callback
        (a regular function or a coroutine function) on each of them.
        The cursor is closed when this method returns.

        Args:
            function: a callback whose only parameter is of the type returned
                by the cursor. If it returns (or its awaited result is) `False`,
                the iteration stops early.
            general_method_timeout_ms: a timeout, in milliseconds, for the whole
                duration of this method. If not provided, there is no such timeout.
            timeout_ms: an alias for `general_method_timeout_ms`.
        """

        timeout_manager = self._method_timeout_manager(
            general_method_timeout_ms, timeout_ms
        )
        try:
            while True:
                try:
                    item = await self._next_item(timeout_manager)
                except StopAsyncIteration:
                    break
                result: Any = function(item)
                if inspect.isawaitable(result):
                    result = await result
                if result is False:
                    break
        finally:
            self.close()

    async def get_sort_vector(self) -> list[float] | str | None:
        """
        Return the vector used in the sort clause of the `find`, as returned by
        the Data API; None, with no API call, if the cursor is not configured
        with `include_sort_vector`. May trigger the fetch of the first page.
        """

        if not self._options.include_sort_vector:
            return None
        if self._pages_retrieved == 0:
            await self.has_next()
        return self._sort_vector
