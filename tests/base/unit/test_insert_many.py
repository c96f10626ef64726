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

import asyncio
import threading
import time
from typing import Any

import pytest

from docapi import Database
from docapi.data.cumulative_operations import (
    InsertManyExecutor,
    collection_inserted_ids,
    table_inserted_ids,
)
from docapi.exceptions import InsertManyException
from docapi.results import CollectionInsertManyResult

from ...conftest import (
    FAKE_API_ENDPOINT,
    async_collection_on,
    collection_on,
    numbered_documents,
)
from ...fake_data_api import FakeDataAPI, HardFailure


def fake_with_duplicate() -> FakeDataAPI:
    """A fake already holding "d10", so inserting d0..d19 fails on that one."""
    return FakeDataAPI([{"_id": "d10", "seq": -1}])


def make_executor(
    fake_api: Any, *, ordered: bool, concurrency: int, chunk_size: int = 5
) -> InsertManyExecutor[CollectionInsertManyResult]:
    return InsertManyExecutor(
        requester=fake_api,
        data_source_name="fake_coll",
        ordered=ordered,
        chunk_size=chunk_size,
        concurrency=concurrency,
        id_extractor=collection_inserted_ids,
        result_factory=lambda ids, raws: CollectionInsertManyResult(
            raw_results=raws, inserted_ids=ids
        ),
        exception_class=InsertManyException,
    )


class TableRequester:
    """Answers insertMany as a table would, echoing a two-column primary key."""

    def __init__(self) -> None:
        self.payloads: list[dict[str, Any]] = []

    def request(self, *, payload: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
        self.payloads.append(payload)
        command_name, body = list(payload.items())[0]
        rows = body["documents"] if command_name == "insertMany" else [body["document"]]
        return {
            "status": {
                "primaryKeySchema": {
                    "p_text": {"type": "text"},
                    "p_int": {"type": "int"},
                },
                "insertedIds": [[row["p_text"], row["p_int"]] for row in rows],
            }
        }

    async def async_request(self, **kwargs: Any) -> dict[str, Any]:
        return self.request(**kwargs)


class InFlightCounter:
    """Answers insertMany after a short pause, tracking the peak of requests."""

    def __init__(self, latency_s: float = 0.02) -> None:
        self.latency_s = latency_s
        self.in_flight = 0
        self.peak = 0
        self.calls = 0
        self._lock = threading.Lock()

    def _enter(self) -> None:
        with self._lock:
            self.calls += 1
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)

    def _exit(self, payload: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            self.in_flight -= 1
        documents = payload["insertMany"]["documents"]
        return {"status": {"insertedIds": [doc["_id"] for doc in documents]}}

    def request(self, *, payload: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
        self._enter()
        time.sleep(self.latency_s)
        return self._exit(payload)

    async def async_request(
        self, *, payload: dict[str, Any], **kwargs: Any
    ) -> dict[str, Any]:
        self._enter()
        await asyncio.sleep(self.latency_s)
        return self._exit(payload)


class TestInsertMany:
    @pytest.mark.describe("test of insert_many success, sync")
    def test_insert_many_success_sync(self) -> None:
        fake_api = FakeDataAPI()
        result = make_executor(fake_api, ordered=False, concurrency=4, chunk_size=10).run(
            numbered_documents(50)
        )
        assert result.inserted_ids == [f"d{i}" for i in range(50)]
        assert result.inserted_count == 50
        assert len(result.raw_results) == 5
        assert fake_api.call_count == 5
        assert len(fake_api.documents) == 50

    @pytest.mark.describe("test of ordered insert_many stopping at first error, sync")
    def test_insert_many_ordered_error_sync(self) -> None:
        fake_api = fake_with_duplicate()
        with pytest.raises(InsertManyException) as exc:
            make_executor(fake_api, ordered=True, concurrency=1).run(
                numbered_documents(20)
            )
        assert exc.value.partial_result.inserted_ids == [f"d{i}" for i in range(10)]
        assert fake_api.call_count == 3
        assert len(exc.value.detailed_error_descriptors) == 1
        assert len(exc.value.error_descriptors) == 1
        assert exc.value.error_descriptors[0].error_code == "DOCUMENT_ALREADY_EXISTS"
        assert exc.value.command == fake_api.payloads[2]
        assert "(partial result: 10 inserted)" in str(exc.value)
        assert all(
            payload["insertMany"]["options"]
            == {"ordered": True, "returnDocumentResponses": True}
            for payload in fake_api.payloads
        )

    @pytest.mark.describe("test of unordered insert_many going through errors, sync")
    def test_insert_many_unordered_error_sync(self) -> None:
        fake_api = fake_with_duplicate()
        with pytest.raises(InsertManyException) as exc:
            make_executor(fake_api, ordered=False, concurrency=3).run(
                numbered_documents(20)
            )
        assert exc.value.partial_result.inserted_ids == [
            f"d{i}" for i in range(20) if i != 10
        ]
        assert exc.value.partial_result.inserted_count == 19
        assert len(exc.value.partial_result.raw_results) == 4
        assert fake_api.call_count == 4
        assert len(exc.value.detailed_error_descriptors) == 1

    @pytest.mark.describe("test of insert_many hard failures, sync")
    def test_insert_many_hard_failure_sync(self) -> None:
        u_fake_api = FakeDataAPI(fail_on_calls={1})
        with pytest.raises(HardFailure):
            make_executor(u_fake_api, ordered=False, concurrency=2).run(
                numbered_documents(40)
            )

        o_fake_api = FakeDataAPI(fail_on_calls={1})
        with pytest.raises(HardFailure):
            make_executor(o_fake_api, ordered=True, concurrency=1).run(
                numbered_documents(40)
            )
        assert o_fake_api.call_count == 2

    @pytest.mark.describe("test of insert_many parameter validation")
    def test_insert_many_validation(self) -> None:
        with pytest.raises(ValueError):
            make_executor(FakeDataAPI(), ordered=True, concurrency=2)
        with pytest.raises(ValueError):
            make_executor(FakeDataAPI(), ordered=False, concurrency=0)
        with pytest.raises(ValueError):
            make_executor(FakeDataAPI(), ordered=False, concurrency=1, chunk_size=0)

        empty_api = FakeDataAPI()
        result = make_executor(empty_api, ordered=False, concurrency=5).run([])
        assert result.inserted_ids == []
        assert empty_api.call_count == 0

    @pytest.mark.describe("test of insert_many concurrency bound, sync")
    def test_insert_many_concurrency_bound_sync(self) -> None:
        counter = InFlightCounter()
        result = make_executor(counter, ordered=False, concurrency=3).run(
            numbered_documents(60)
        )
        assert counter.calls == 12
        assert 2 <= counter.peak <= 3
        assert sorted(result.inserted_ids, key=lambda _id: int(_id[1:])) == [
            f"d{i}" for i in range(60)
        ]

        serial_counter = InFlightCounter()
        make_executor(serial_counter, ordered=True, concurrency=1).run(
            numbered_documents(20)
        )
        assert serial_counter.peak == 1

    @pytest.mark.describe("test of collection insert_many defaults, sync")
    def test_collection_insert_many_defaults_sync(self) -> None:
        fake_api = FakeDataAPI()
        collection = collection_on(fake_api)
        result = collection.insert_many(numbered_documents(120))
        assert result.inserted_count == 120
        assert sorted(
            len(payload["insertMany"]["documents"]) for payload in fake_api.payloads
        ) == [20, 50, 50]
        assert all(
            payload["insertMany"]["options"]["ordered"] is False
            for payload in fake_api.payloads
        )

        with pytest.raises(ValueError):
            collection.insert_many(numbered_documents(3), ordered=True, concurrency=4)

        with pytest.raises(InsertManyException) as exc:
            collection.insert_many(
                numbered_documents(20, offset=110), ordered=True, chunk_size=4
            )
        assert exc.value.partial_result.inserted_ids == []
        assert fake_api.call_count == 4

    @pytest.mark.describe("test of table insert_many and insert_one, sync")
    def test_table_inserts_sync(self) -> None:
        requester = TableRequester()
        table = Database(FAKE_API_ENDPOINT, token="t").get_table("fake_table")
        table._api_commander = requester  # type: ignore[assignment]
        rows = [{"p_text": f"t{i}", "p_int": i, "col": "x"} for i in range(7)]
        result = table.insert_many(rows, chunk_size=3, concurrency=2)
        assert result.inserted_ids == [
            {"p_text": f"t{i}", "p_int": i} for i in range(7)
        ]
        assert result.inserted_id_tuples == [(f"t{i}", i) for i in range(7)]
        assert len(requester.payloads) == 3

        io_result = table.insert_one({"p_text": "z", "p_int": 0})
        assert io_result.inserted_id == {"p_text": "z", "p_int": 0}
        assert io_result.inserted_id_tuple == ("z", 0)

    @pytest.mark.describe("test of inserted id extraction")
    def test_inserted_id_extractors(self) -> None:
        im_response = {
            "status": {
                "documentResponses": [
                    {"_id": "a", "status": "OK"},
                    {"_id": "b", "status": "ERROR", "errorsIdx": 0},
                    {"_id": "c", "status": "OK"},
                ],
            },
            "errors": [{"errorCode": "E", "message": "M"}],
        }
        assert collection_inserted_ids(im_response) == ["a", "c"]
        assert collection_inserted_ids({"status": {"insertedIds": [1, 2]}}) == [1, 2]
        assert collection_inserted_ids({"errors": []}) == []
        t_response = {
            "status": {
                "primaryKeySchema": {"k": {"type": "int"}},
                "insertedIds": [[1], [2]],
            },
        }
        assert table_inserted_ids(t_response) == [({"k": 1}, (1,)), ({"k": 2}, (2,))]


class TestInsertManyAsync:
    @pytest.mark.describe("test of insert_many concurrency bound, async")
    async def test_insert_many_concurrency_bound_async(self) -> None:
        counter = InFlightCounter()
        result = await make_executor(counter, ordered=False, concurrency=3).async_run(
            numbered_documents(60)
        )
        assert counter.calls == 12
        assert counter.peak == 3
        assert len(result.inserted_ids) == 60

        serial_counter = InFlightCounter()
        await make_executor(serial_counter, ordered=True, concurrency=1).async_run(
            numbered_documents(20)
        )
        assert serial_counter.peak == 1

    @pytest.mark.describe("test of insert_many success, async")
    async def test_insert_many_success_async(self) -> None:
        fake_api = FakeDataAPI(latency_s=0.01)
        result = await make_executor(
            fake_api, ordered=False, concurrency=4, chunk_size=10
        ).async_run(numbered_documents(50))
        assert result.inserted_ids == [f"d{i}" for i in range(50)]
        assert fake_api.call_count == 5

    @pytest.mark.describe("test of ordered insert_many stopping at first error, async")
    async def test_insert_many_ordered_error_async(self) -> None:
        fake_api = fake_with_duplicate()
        with pytest.raises(InsertManyException) as exc:
            await make_executor(fake_api, ordered=True, concurrency=1).async_run(
                numbered_documents(20)
            )
        assert exc.value.partial_result.inserted_ids == [f"d{i}" for i in range(10)]
        assert fake_api.call_count == 3

    @pytest.mark.describe("test of unordered insert_many going through errors, async")
    async def test_insert_many_unordered_error_async(self) -> None:
        fake_api = fake_with_duplicate()
        with pytest.raises(InsertManyException) as exc:
            await make_executor(fake_api, ordered=False, concurrency=3).async_run(
                numbered_documents(20)
            )
        assert exc.value.partial_result.inserted_ids == [
            f"d{i}" for i in range(20) if i != 10
        ]
        assert fake_api.call_count == 4

    @pytest.mark.describe("test of insert_many hard failures, async")
    async def test_insert_many_hard_failure_async(self) -> None:
        fake_api = FakeDataAPI(fail_on_calls={0}, latency_s=0.01)
        with pytest.raises(HardFailure):
            await make_executor(fake_api, ordered=False, concurrency=2).async_run(
                numbered_documents(40)
            )

    @pytest.mark.describe("test of collection insert_many, async")
    async def test_collection_insert_many_async(self) -> None:
        fake_api = FakeDataAPI()
        acollection = async_collection_on(fake_api)
        result = await acollection.insert_many(numbered_documents(30), chunk_size=7)
        assert result.inserted_ids == [f"d{i}" for i in range(30)]
        assert fake_api.call_count == 5
