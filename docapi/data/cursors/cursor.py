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

import copy
import dataclasses
import logging
from abc import ABC
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

from typing_extensions import Self

from docapi.constants import (
    FilterType,
    ProjectionType,
    SortType,
    normalize_optional_projection,
)
from docapi.exceptions import (
    CursorException,
    MultiCallTimeoutManager,
    _first_valid_timeout,
    _TimeoutContext,
)

if TYPE_CHECKING:
    from docapi.data.cursors.query_engine import _FindQueryEngine

# A cursor reads TRAW from DB and maps them to T if any mapping.
# A cursor returned by .map will map to TNEW
TRAW = TypeVar("TRAW")
T = TypeVar("T")
TNEW = TypeVar("TNEW")


logger = logging.getLogger(__name__)


class CursorState(Enum):
    """
    This enum expresses the possible states for a cursor.

    Values:
        IDLE: Iteration over results has not started yet (alive=T, started=F)
        STARTED: Iteration has started, *can* still yield results (alive=T, started=T)
        CLOSED: Finished/forcibly stopped. Won't return more items (alive=F)
    """

    IDLE = "idle"
    STARTED = "started"
    CLOSED = "closed"


class PageStateKind(Enum):
    NOT_STARTED = "not_started"
    HAS_MORE = "has_more"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class PageState:
    """
    Where a cursor stands with respect to the server-side pagination:
    no page asked for yet, more pages available (with the continuation token
    to pass back to the server), or no more pages.
    """

    kind: PageStateKind
    token: str | None = None

    @classmethod
    def not_started(cls) -> PageState:
        return cls(kind=PageStateKind.NOT_STARTED)

    @classmethod
    def has_more(cls, token: str) -> PageState:
        return cls(kind=PageStateKind.HAS_MORE, token=token)

    @classmethod
    def exhausted(cls) -> PageState:
        return cls(kind=PageStateKind.EXHAUSTED)

    @classmethod
    def from_next_page_state(cls, next_page_state: str | None) -> PageState:
        """A missing or null "nextPageState" in a response means no more pages."""
        if next_page_state:
            return cls.has_more(next_page_state)
        return cls.exhausted()

    @property
    def is_exhausted(self) -> bool:
        return self.kind is PageStateKind.EXHAUSTED

    def __repr__(self) -> str:
        if self.kind is PageStateKind.HAS_MORE:
            return f"PageState(has_more, token={self.token!r})"
        return f"PageState({self.kind.value})"


@dataclass(frozen=True)
class FindCursorOptions:
    """
    The full configuration of a find cursor, as an immutable value.
    Configuring a cursor replaces this object with an updated copy.

    Attributes:
        filter: the filter clause, passed to the API as is.
        sort: the sort clause, if any.
        projection: the projection, if any, normalized into a dictionary.
        limit: the maximum number of items to return. None means unbounded.
        skip: the number of matching items to skip before starting to return.
        include_similarity: whether to ask for the "$similarity" score
            in vector searches.
        include_sort_vector: whether to ask for the vector used in the sort clause.
    """

    filter: FilterType = field(default_factory=dict)
    sort: SortType | None = None
    projection: dict[str, Any] | None = None
    limit: int | None = None
    skip: int | None = None
    include_similarity: bool | None = None
    include_sort_vector: bool | None = None

    @staticmethod
    def create(
        *,
        filter: FilterType | None = None,
        sort: SortType | None = None,
        projection: ProjectionType | None = None,
        limit: int | None = None,
        skip: int | None = None,
        include_similarity: bool | None = None,
        include_sort_vector: bool | None = None,
    ) -> FindCursorOptions:
        # caller-provided structures are copied once, so later changes
        # by the caller never leak into the cursor
        return FindCursorOptions(
            filter=copy.deepcopy(filter) if filter else {},
            sort=copy.deepcopy(sort) if sort else None,
            projection=copy.deepcopy(normalize_optional_projection(projection)),
            limit=limit or None,
            skip=skip,
            include_similarity=include_similarity,
            include_sort_vector=include_sort_vector,
        )

    def with_changes(self, **changes: Any) -> FindCursorOptions:
        return dataclasses.replace(self, **changes)


class AbstractCursor(ABC, Generic[TRAW]):
    """
    A cursor obtained from the invocation of a find-type method over a table or
    a collection.
    This is the main interface to scroll through the results (resp. rows or documents).

    This class is not meant to be directly instantiated by the user, rather it
    is a superclass capturing the mechanisms common to sync and async cursors:
    configuration while idle, buffer management and state bookkeeping.

    Cursors allow iteration over results while pages of new data are fetched
    from the API when needed. For this reason, cursors internally manage a local
    buffer that is progressively emptied and re-filled with a new page in a manner
    hidden from the user, except that some cursor methods allow to peek into
    this buffer should it be necessary.
    """

    _query_engine: _FindQueryEngine
    _options: FindCursorOptions
    _mapper: Callable[[TRAW], Any] | None
    _request_timeout_ms: int | None
    _state: CursorState
    _buffer: list[TRAW]
    _page_state: PageState
    _pages_retrieved: int
    _consumed: int
    _sort_vector: list[float] | str | None

    def __init__(
        self,
        *,
        query_engine: _FindQueryEngine,
        options: FindCursorOptions,
        mapper: Callable[[TRAW], Any] | None = None,
        request_timeout_ms: int | None = None,
    ) -> None:
        self._query_engine = query_engine
        self._options = options
        self._mapper = mapper
        self._request_timeout_ms = request_timeout_ms
        self.rewind()

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}("{self.data_source_name}", '
            f"{self._state.value}, consumed so far: {self._consumed})"
        )

    def _ensure_idle(self) -> None:
        if self._state != CursorState.IDLE:
            raise CursorException(
                text="Cannot modify a cursor that has already started.",
                cursor_state=self._state.value,
            )

    def _configure(self, **changes: Any) -> Self:
        self._ensure_idle()
        self._options = self._options.with_changes(**changes)
        return self

    def _ingest_page(
        self,
        items: list[TRAW],
        next_page_state: PageState,
        status: dict[str, Any] | None,
    ) -> None:
        """Replace the buffer with a freshly-fetched page."""
        if self._pages_retrieved == 0 and self._options.include_sort_vector:
            self._sort_vector = (status or {}).get("sortVector")
        self._buffer = items
        self._page_state = next_page_state
        self._pages_retrieved += 1

    @property
    def _requests_sort_vector(self) -> bool:
        # the sort vector is only asked for (and returned) with the first page
        return self._pages_retrieved == 0 and bool(self._options.include_sort_vector)

    def _page_timeout_context(
        self, timeout_manager: MultiCallTimeoutManager | None
    ) -> _TimeoutContext:
        if timeout_manager is None:
            return _TimeoutContext(
                request_ms=self._request_timeout_ms,
                label="request_timeout_ms",
            )
        return timeout_manager.remaining_timeout(
            cap_time_ms=self._request_timeout_ms,
            cap_timeout_label="request_timeout_ms",
        )

    @staticmethod
    def _method_timeout_manager(
        general_method_timeout_ms: int | None,
        timeout_ms: int | None,
    ) -> MultiCallTimeoutManager:
        _overall_ms, _overall_label = _first_valid_timeout(
            (timeout_ms, "timeout_ms"),
            (general_method_timeout_ms, "general_method_timeout_ms"),
        )
        return MultiCallTimeoutManager(
            overall_timeout_ms=_overall_ms,
            timeout_label=_overall_label,
        )

    def _page_made_no_progress(self, previous_page_state: PageState) -> bool:
        """
        An empty page whose page state has not moved on (or that ends the
        results) cannot lead to further items: stop instead of looping.
        """
        return not self._buffer and (
            self._page_state.is_exhausted or self._page_state == previous_page_state
        )

    def _pop_and_map(self) -> Any:
        raw_item = self._buffer.pop(0)
        self._consumed += 1
        if self._mapper is None:
            return raw_item
        try:
            return self._mapper(raw_item)
        except Exception:
            self.close()
            raise

    @property
    def state(self) -> CursorState:
        """
        The current state of this cursor.

        Returns:
            a value in `docapi.cursors.CursorState`.
        """

        return self._state

    @property
    def alive(self) -> bool:
        """Whether the cursor is not closed."""
        return self._state != CursorState.CLOSED

    @property
    def consumed(self) -> int:
        """
        The number of items the cursors has yielded, i.e. how many items
        have been already read by the code consuming the cursor.
        """

        return self._consumed

    @property
    def cursor_id(self) -> int:
        """An integer uniquely identifying this cursor."""

        return id(self)

    @property
    def buffered_count(self) -> int:
        """
        The number of items (documents, rows) currently stored in the client-side
        buffer of this cursor. Reading this property never triggers new API calls
        to re-fill the buffer.
        """

        return len(self._buffer)

    @property
    def data_source_name(self) -> str:
        """The name of the collection or table this cursor reads from."""
        return self._query_engine.data_source_name

    @property
    def options(self) -> FindCursorOptions:
        """The current (immutable) configuration of the cursor."""
        return self._options

    @property
    def page_state(self) -> PageState:
        return self._page_state

    def filter(self, filter: FilterType | None) -> Self:
        """
        Set a new `filter` value for this cursor.

        This method can only be called on an idle cursor and returns the cursor
        itself, to allow for chaining.
        """
        return self._configure(filter=copy.deepcopy(filter) if filter else {})

    def project(self, projection: ProjectionType | None) -> Self:
        """
        Set a new `projection` value for this cursor.
        Only allowed on an idle cursor.
        """
        return self._configure(
            projection=copy.deepcopy(normalize_optional_projection(projection))
        )

    def sort(self, sort: SortType | None) -> Self:
        """
        Set a new `sort` value for this cursor.
        Only allowed on an idle cursor.
        """
        return self._configure(sort=copy.deepcopy(sort) if sort else None)

    def limit(self, limit: int | None) -> Self:
        """
        Set a new `limit` value for this cursor. Zero or None mean no limit.
        Only allowed on an idle cursor.
        """
        if limit is not None and limit < 0:
            raise ValueError("The cursor limit cannot be negative.")
        return self._configure(limit=limit or None)

    def skip(self, skip: int | None) -> Self:
        """
        Set a new `skip` value for this cursor.
        Only allowed on an idle cursor.
        """
        if skip is not None and skip < 0:
            raise ValueError("The cursor skip cannot be negative.")
        return self._configure(skip=skip)

    def include_similarity(self, include_similarity: bool | None = True) -> Self:
        """
        Set a new `include_similarity` value for this cursor.
        Only allowed on an idle cursor.
        """
        return self._configure(include_similarity=include_similarity)

    def include_sort_vector(self, include_sort_vector: bool | None = True) -> Self:
        """
        Set a new `include_sort_vector` value for this cursor.
        Only allowed on an idle cursor.
        """
        return self._configure(include_sort_vector=include_sort_vector)

    def _compose_mapper(self, mapper: Callable[[Any], Any]) -> None:
        self._ensure_idle()
        if self._mapper is None:
            self._mapper = mapper
        else:
            previous_mapper = self._mapper

            def _composite(item: TRAW) -> Any:
                return mapper(previous_mapper(item))

            self._mapper = _composite

    def close(self) -> None:
        """
        Close the cursor, regardless of its state. A cursor can be closed at any
        time, possibly discarding the portion of results that has not yet been
        consumed, if any.

        This is an in-place modification of the cursor.
        """

        if self._state != CursorState.CLOSED:
            logger.debug(f"closing cursor {self.cursor_id} on '{self.data_source_name}'")
        self._state = CursorState.CLOSED
        self._buffer = []

    def rewind(self) -> None:
        """
        Rewind the cursor, bringing it back to its pristine state of no items
        retrieved/consumed yet, regardless of its current state.
        All cursor settings (filter, mapping, projection, etc) are retained.

        Keep in mind that, subject to changes occurred on the table or collection,
        the results may be different if a cursor is browsed a second time.

        This is an in-place modification of the cursor.
        """
        self._state = CursorState.IDLE
        self._buffer = []
        self._page_state = PageState.not_started()
        self._pages_retrieved = 0
        self._consumed = 0
        self._sort_vector = None

    def consume_buffer(self, n: int | None = None) -> list[TRAW]:
        """
        Consume (return) up to the requested number of buffered items, as they
        came from the API (i.e. with no mapping applied).
        The returned items are marked as consumed, meaning that subsequently
        consuming the cursor will start after those items.

        This method only concerns the local buffer: it never triggers fetching
        of new pages from the Data API. It can be called regardless of the
        cursor state without exceptions being raised.

        Args:
            n: amount of items to return. If omitted, the whole buffer is returned.

        Returns:
            list: a list of items. If there are fewer items than requested,
                the whole buffer is returned: in particular, if it is empty
                (such as when the cursor is closed), an empty list is returned.
        """
        _n = n if n is not None else len(self._buffer)
        if _n < 0:
            raise ValueError("A negative amount of items was requested.")
        returned, remaining = self._buffer[:_n], self._buffer[_n:]
        self._buffer = remaining
        self._consumed += len(returned)
        return returned
