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

from docapi.data.cumulative_operations import PaginatedMutationExecutor
from docapi.exceptions import (
    DeleteManyException,
    UnexpectedDataAPIResponseException,
    UpdateManyException,
)
from docapi.results import CollectionDeleteResult

from ...conftest import async_collection_on, collection_on, numbered_documents
from ...fake_data_api import FakeDataAPI, HardFailure


class ScriptedRequester:
    """Returns a fixed sequence of responses, one per request."""

    def __init__(self, responses: list[dict[str, Any]]) -> None:
        self.responses = list(responses)
        self.payloads: list[dict[str, Any]] = []

    def request(self, *, payload: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
        self.payloads.append(payload)
        return self.responses.pop(0)

    async def async_request(self, **kwargs: Any) -> dict[str, Any]:
        return self.request(**kwargs)


def delete_executor(
    requester: Any, *, ordered: bool = True
) -> PaginatedMutationExecutor[CollectionDeleteResult]:
    return PaginatedMutationExecutor(
        requester=requester,
        data_source_name="fake_coll",
        command_name="deleteMany",
        command_body={"filter": {}},
        count_fields=["deletedCount"],
        continuation_field="moreData",
        result_factory=lambda counts, raws, _: CollectionDeleteResult(
            raw_results=raws, deleted_count=counts["deletedCount"]
        ),
        exception_class=DeleteManyException,
        ordered=ordered,
    )


API_ERROR = {"errorCode": "SERVER_FAILURE", "message": "Something went wrong."}


class TestPaginatedMutations:
    @pytest.mark.describe("test of delete_many over several requests, sync")
    def test_delete_many_sync(self) -> None:
        fake_api = FakeDataAPI(numbered_documents(45), mutation_page_size=20)
        collection = collection_on(fake_api)
        dm_result = collection.delete_many({})
        assert dm_result.deleted_count == 45
        assert fake_api.commands() == ["deleteMany"] * 3
        assert all(
            payload == {"deleteMany": {"filter": {}}} for payload in fake_api.payloads
        )
        assert len(dm_result.raw_results) == 3
        assert fake_api.documents == []

        fake_api.payloads.clear()
        assert collection.delete_many({"seq": 1000}).deleted_count == 0
        assert fake_api.call_count == 1

    @pytest.mark.describe("test of delete_many over several requests, async")
    async def test_delete_many_async(self) -> None:
        fake_api = FakeDataAPI(numbered_documents(45), mutation_page_size=20)
        dm_result = await async_collection_on(fake_api).delete_many({})
        assert dm_result.deleted_count == 45
        assert fake_api.call_count == 3

    @pytest.mark.describe("test of delete_many with API errors")
    def test_delete_many_errors(self) -> None:
        responses = [
            {"status": {"deletedCount": 20, "moreData": True}},
            {"status": {"deletedCount": 3, "moreData": True}, "errors": [API_ERROR]},
            {"status": {"deletedCount": 5}},
        ]
        o_requester = ScriptedRequester(responses)
        with pytest.raises(DeleteManyException) as exc:
            delete_executor(o_requester).run()
        assert exc.value.partial_result.deleted_count == 23
        assert len(o_requester.payloads) == 2
        assert exc.value.error_descriptors[0].error_code == "SERVER_FAILURE"
        assert exc.value.raw_response == responses[1]

        u_requester = ScriptedRequester(responses)
        with pytest.raises(DeleteManyException) as exc:
            delete_executor(u_requester, ordered=False).run()
        assert exc.value.partial_result.deleted_count == 28
        assert len(u_requester.payloads) == 3

    @pytest.mark.describe("test of delete_many with faulty or failing responses")
    def test_delete_many_faulty(self) -> None:
        with pytest.raises(UnexpectedDataAPIResponseException):
            delete_executor(ScriptedRequester([{"status": {"moreData": True}}])).run()

        fake_api = FakeDataAPI(
            numbered_documents(45), mutation_page_size=20, fail_on_calls={1}
        )
        with pytest.raises(HardFailure):
            collection_on(fake_api).delete_many({})
        assert len(fake_api.documents) == 25

    @pytest.mark.describe("test of update_many over several requests, sync")
    def test_update_many_sync(self) -> None:
        fake_api = FakeDataAPI(numbered_documents(45), mutation_page_size=20)
        um_result = collection_on(fake_api).update_many({}, {"$set": {"tag": "x"}})
        assert um_result.matched_count == 45
        assert um_result.modified_count == 45
        assert um_result.upserted_id is None
        assert um_result.update_info == {
            "n": 45,
            "updatedExisting": True,
            "ok": 1.0,
            "nModified": 45,
        }
        assert [
            (payload["updateMany"].get("options") or {}).get("pageState")
            for payload in fake_api.payloads
        ] == [None, "20", "40"]
        assert all(
            payload["updateMany"]["options"]["upsert"] is False
            for payload in fake_api.payloads
        )
        assert all(doc["tag"] == "x" for doc in fake_api.documents)

    @pytest.mark.describe("test of update_many over several requests, async")
    async def test_update_many_async(self) -> None:
        fake_api = FakeDataAPI(numbered_documents(30), mutation_page_size=20)
        acollection = async_collection_on(fake_api)
        um_result = await acollection.update_many({}, {"$set": {"tag": "y"}})
        assert um_result.matched_count == 30
        assert fake_api.call_count == 2

    @pytest.mark.describe("test of update_many with API errors")
    def test_update_many_errors(self) -> None:
        collection = collection_on(FakeDataAPI())
        requester = ScriptedRequester(
            [
                {
                    "status": {
                        "matchedCount": 20,
                        "modifiedCount": 18,
                        "nextPageState": "p1",
                    }
                },
                {
                    "status": {"matchedCount": 4, "modifiedCount": 4},
                    "errors": [API_ERROR, API_ERROR],
                },
            ]
        )
        collection._api_commander = requester  # type: ignore[assignment]
        with pytest.raises(UpdateManyException) as exc:
            collection.update_many({"a": 1}, {"$set": {"b": 2}})
        assert exc.value.partial_result.matched_count == 24
        assert exc.value.partial_result.modified_count == 22
        assert len(exc.value.error_descriptors) == 2
        assert len(exc.value.detailed_error_descriptors) == 1
        assert requester.payloads[1]["updateMany"]["options"] == {
            "upsert": False,
            "pageState": "p1",
        }
