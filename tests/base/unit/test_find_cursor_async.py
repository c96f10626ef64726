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

from typing import Any

import pytest

from docapi.cursors import AsyncFindCursor, CursorState, FindCursorOptions
from docapi.data.cursors.query_engine import _FindQueryEngine
from docapi.exceptions import CursorException

from ...conftest import async_collection_on, numbered_documents
from ...fake_data_api import FakeDataAPI, HardFailure
from .test_find_cursor_sync import StuckRequester


class TestFindCursorAsync:
    @pytest.mark.describe("test of cursor laziness and full consumption, async")
    async def test_cursor_lazy_full_consumption_async(
        self, fake_api: FakeDataAPI
    ) -> None:
        cursor = async_collection_on(fake_api).find({})
        assert cursor.state == CursorState.IDLE
        assert fake_api.call_count == 0

        seqs = [doc["seq"] async for doc in cursor]
        assert seqs == list(range(25))
        assert fake_api.call_count == 3
        assert cursor.state == CursorState.CLOSED
        assert cursor.consumed == 25

    @pytest.mark.describe("test of cursor buffer, rewind and clone, async")
    async def test_cursor_buffer_rewind_clone_async(
        self, fake_api: FakeDataAPI
    ) -> None:
        cursor = async_collection_on(fake_api).find({}).map(lambda doc: doc["seq"])
        assert await cursor.has_next()
        assert await cursor.__anext__() == 0
        assert [doc["seq"] for doc in cursor.consume_buffer(3)] == [1, 2, 3]
        assert cursor.consumed == 4
        assert await cursor.to_list() == list(range(4, 25))

        clone = cursor.clone()
        assert clone.state == CursorState.IDLE
        assert len(await clone.to_list()) == 25

        cursor.rewind()
        cursor.rewind()
        assert cursor.state == CursorState.IDLE
        assert cursor.consumed == 0
        assert cursor.buffered_count == 0
        assert await cursor.to_list() == list(range(25))

    @pytest.mark.describe("test of cursor has_next closing when exhausted, async")
    async def test_cursor_has_next_async(self, fake_api: FakeDataAPI) -> None:
        cursor = async_collection_on(fake_api).find({}, limit=3)
        assert [(await cursor.__anext__())["seq"] for _ in range(3)] == [0, 1, 2]
        assert cursor.state == CursorState.STARTED
        assert not await cursor.has_next()
        assert cursor.state == CursorState.CLOSED

        empty_cursor = async_collection_on(FakeDataAPI([])).find({})
        assert not await empty_cursor.has_next()
        assert empty_cursor.state == CursorState.CLOSED

    @pytest.mark.describe("test of clone independence, async")
    async def test_cursor_clone_independence_async(
        self, fake_api: FakeDataAPI
    ) -> None:
        cursor = async_collection_on(fake_api).find({})
        assert (await cursor.__anext__())["seq"] == 0
        before = (cursor.state, cursor.consumed, cursor.buffered_count)

        clone = cursor.clone()
        assert len(await clone.to_list()) == 25
        assert (cursor.state, cursor.consumed, cursor.buffered_count) == before
        assert (await cursor.__anext__())["seq"] == 1

        other_clone = cursor.clone()
        cursor.close()
        assert other_clone.state == CursorState.IDLE
        assert (await other_clone.__anext__())["seq"] == 0

    @pytest.mark.describe("test of cursor configuration, async")
    async def test_cursor_configuration_async(self, fake_api: FakeDataAPI) -> None:
        cursor = async_collection_on(fake_api).find({})
        assert cursor.limit(3).skip(1).sort({"seq": 1}) is cursor
        assert [doc["seq"] async for doc in cursor] == [1, 2, 3]
        with pytest.raises(CursorException):
            cursor.project({"a": True})
        with pytest.raises(CursorException):
            cursor.map(lambda doc: doc)

    @pytest.mark.describe("test of cursor error handling, async")
    async def test_cursor_errors_async(self) -> None:
        fake_api = FakeDataAPI(numbered_documents(25), page_size=10, fail_on_calls={2})
        cursor = async_collection_on(fake_api).find({})
        with pytest.raises(HardFailure):
            await cursor.to_list()
        assert cursor.state == CursorState.CLOSED

        m_cursor = (
            async_collection_on(FakeDataAPI(numbered_documents(5)))
            .find({})
            .map(lambda doc: doc["seq"] // (doc["seq"] - 2))
        )
        assert await m_cursor.__anext__() == 0
        with pytest.raises(ZeroDivisionError):
            async for _ in m_cursor:
                pass
        assert m_cursor.state == CursorState.CLOSED

    @pytest.mark.describe("test of cursor for_each, async")
    async def test_cursor_for_each_async(self, fake_api: FakeDataAPI) -> None:
        seen: list[int] = []

        def _sync_collect(doc: dict[str, Any]) -> bool:
            seen.append(doc["seq"])
            return doc["seq"] < 2

        await async_collection_on(fake_api).find({}).for_each(_sync_collect)
        assert seen == [0, 1, 2]

        seen.clear()

        async def _async_collect(doc: dict[str, Any]) -> None:
            seen.append(doc["seq"])

        cursor = async_collection_on(fake_api).find({}, limit=12)
        await cursor.for_each(_async_collect)
        assert seen == list(range(12))
        assert cursor.state == CursorState.CLOSED

    @pytest.mark.describe("test of cursor sort vector, async")
    async def test_cursor_sort_vector_async(self, fake_api: FakeDataAPI) -> None:
        no_sv_cursor = async_collection_on(fake_api).find({})
        assert await no_sv_cursor.get_sort_vector() is None
        assert fake_api.call_count == 0

        cursor = async_collection_on(fake_api).find({}).include_sort_vector()
        assert await cursor.get_sort_vector() == [0.1, 0.2, 0.3]
        assert cursor.consumed == 0
        assert fake_api.call_count == 1

    @pytest.mark.describe("test of cursor stopping on non-advancing pages, async")
    async def test_cursor_stuck_pages_async(self) -> None:
        requester = StuckRequester()
        cursor: AsyncFindCursor[Any, Any] = AsyncFindCursor(
            query_engine=_FindQueryEngine(requester=requester, data_source_name="x"),
            options=FindCursorOptions.create(),
        )
        assert await cursor.to_list() == []
        assert requester.calls == 2
