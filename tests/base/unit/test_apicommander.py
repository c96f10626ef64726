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

import json
import time

import pytest
import werkzeug
from httpx import HTTPStatusError
from pytest_httpserver import HTTPServer

from docapi.exceptions import (
    DataAPIHttpException,
    DataAPIResponseException,
    DataAPITimeoutException,
    UnexpectedDataAPIResponseException,
    _TimeoutContext,
)
from docapi.utils.api_commander import APICommander
from docapi.utils.request_tools import HttpMethod

SLEEPER_TIME_MS = 500
TIMEOUT_PARAM_MS = 100
BASE_PATH = "/base"


def response_sleeper(request: werkzeug.Request) -> werkzeug.Response:
    time.sleep(SLEEPER_TIME_MS / 1000)
    return werkzeug.Response(json.dumps({"status": {}}))


def hv_matcher(hk: str, hv: str | None, ev: str) -> bool:
    if hk.lower() == "user-agent":
        return hv is not None and hv.startswith(ev)
    return hv == ev


@pytest.fixture
def commander(httpserver: HTTPServer) -> APICommander:
    return APICommander(
        api_endpoint=httpserver.url_for("/"),
        path=BASE_PATH,
        headers={"h": "v", "Token": "tkn", "skipped": None},
        callers=[("cn0", "cv0"), ("cn1", "cv1")],
    )


class TestAPICommander:
    @pytest.mark.describe("test of APICommander conversion methods")
    def test_apicommander_conversions(self) -> None:
        cmd1 = APICommander(
            api_endpoint="api_endpoint1",
            path="path1",
            headers={"h": "headers1"},
            callers=[("c", "v")],
            redacted_header_names=["redacted_header_names1"],
        )
        cmd2 = APICommander(
            api_endpoint="api_endpoint1",
            path="path1",
            headers={"h": "headers1"},
            callers=[("c", "v")],
            redacted_header_names=["redacted_header_names1"],
        )
        assert cmd1 == cmd2

        assert cmd1 != cmd1._copy(api_endpoint="x")
        assert cmd1 != cmd1._copy(path="x")
        assert cmd1 != cmd1._copy(headers={})
        assert cmd1 != cmd1._copy(callers=[])
        assert cmd1 != cmd1._copy(redacted_header_names=[])

        assert cmd1 == cmd1._copy(api_endpoint="x")._copy(api_endpoint="api_endpoint1")
        assert cmd1 == cmd1._copy(path="x")._copy(path="path1")
        assert cmd1 == cmd1._copy(headers={})._copy(headers={"h": "headers1"})
        assert cmd1 == cmd1._copy(callers=[])._copy(callers=[("c", "v")])
        assert cmd1 == cmd1._copy(redacted_header_names=[])._copy(
            redacted_header_names=["redacted_header_names1"]
        )

    @pytest.mark.describe("test of APICommander header composition")
    def test_apicommander_headers(self, commander: APICommander) -> None:
        assert "skipped" not in commander.full_headers
        assert commander.full_headers["Token"] == "tkn"
        assert commander.full_headers["User-Agent"].startswith("cn0/cv0 cn1/cv1 docapi/")
        assert commander._loggable_headers["Token"] != "tkn"
        assert commander._loggable_headers["h"] == "v"
        assert commander.full_path.endswith("/base")

    @pytest.mark.describe("test of APICommander request, sync")
    def test_apicommander_request_sync(
        self, httpserver: HTTPServer, commander: APICommander
    ) -> None:
        httpserver.expect_oneshot_request(
            BASE_PATH,
            method=HttpMethod.POST,
            headers={
                "h": "v",
                "Token": "tkn",
                "User-Agent": "cn0/cv0 cn1/cv1",
            },
            header_value_matcher=hv_matcher,
            json={"findOne": {"filter": {"a": 1}}},
        ).respond_with_json({"data": {"document": {"a": 1}}})
        resp = commander.request(payload={"findOne": {"filter": {"a": 1}}})
        assert resp == {"data": {"document": {"a": 1}}}

    @pytest.mark.describe("test of APICommander request, async")
    async def test_apicommander_request_async(
        self, httpserver: HTTPServer, commander: APICommander
    ) -> None:
        httpserver.expect_oneshot_request(
            BASE_PATH,
            method=HttpMethod.POST,
            headers={
                "h": "v",
                "Token": "tkn",
                "User-Agent": "cn0/cv0 cn1/cv1",
            },
            header_value_matcher=hv_matcher,
            json={"findOne": {}},
        ).respond_with_json({"data": {"document": None}})
        async with commander:
            resp = await commander.async_request(payload={"findOne": {}})
        assert resp == {"data": {"document": None}}

    @pytest.mark.describe("test of APICommander handling of API errors, sync")
    def test_apicommander_api_errors_sync(
        self, httpserver: HTTPServer, commander: APICommander
    ) -> None:
        err_response = {"errors": [{"errorCode": "E", "message": "bad"}]}
        httpserver.expect_oneshot_request(BASE_PATH).respond_with_json(err_response)
        with pytest.raises(DataAPIResponseException) as exc:
            commander.request(payload={"findOne": {}})
        assert exc.value.command == {"findOne": {}}
        assert exc.value.raw_response == err_response
        assert str(exc.value) == "bad (E)"

        httpserver.expect_oneshot_request(BASE_PATH).respond_with_json(err_response)
        resp = commander.request(payload={"findOne": {}}, raise_api_errors=False)
        assert resp == err_response

    @pytest.mark.describe("test of APICommander handling of faulty responses, sync")
    def test_apicommander_faulty_responses_sync(
        self, httpserver: HTTPServer, commander: APICommander
    ) -> None:
        httpserver.expect_oneshot_request(BASE_PATH).respond_with_data("{not json")
        with pytest.raises(UnexpectedDataAPIResponseException) as exc:
            commander.request(payload={"findOne": {}})
        assert exc.value.raw_response == {"raw_response": "{not json"}

        httpserver.expect_oneshot_request(BASE_PATH).respond_with_data("[1, 2]")
        with pytest.raises(UnexpectedDataAPIResponseException):
            commander.request(payload={"findOne": {}})

        httpserver.expect_oneshot_request(BASE_PATH).respond_with_data(
            json.dumps({"errors": [{"message": "boom"}]}),
            status=500,
        )
        with pytest.raises(HTTPStatusError) as h_exc:
            commander.request(payload={"findOne": {}})
        assert isinstance(h_exc.value, DataAPIHttpException)
        assert h_exc.value.response.status_code == 500
        assert "boom" in str(h_exc.value)
        assert json.loads(h_exc.value.request.content.decode()) == {"findOne": {}}

    @pytest.mark.describe("test of APICommander handling of faulty responses, async")
    async def test_apicommander_faulty_responses_async(
        self, httpserver: HTTPServer, commander: APICommander
    ) -> None:
        httpserver.expect_oneshot_request(BASE_PATH).respond_with_data("")
        with pytest.raises(UnexpectedDataAPIResponseException):
            await commander.async_request(payload={"findOne": {}})

        httpserver.expect_oneshot_request(BASE_PATH).respond_with_data(
            "blah", status=404
        )
        with pytest.raises(DataAPIHttpException) as exc:
            await commander.async_request(payload={"findOne": {}})
        assert exc.value.error_descriptors == []
        assert "blah" not in str(exc.value)

    @pytest.mark.describe("test of APICommander timeout, sync")
    def test_apicommander_timeout_sync(self, httpserver: HTTPServer) -> None:
        cmd = APICommander(
            api_endpoint=httpserver.url_for("/"),
            path=BASE_PATH,
        )

        httpserver.expect_oneshot_request(
            BASE_PATH,
            method=HttpMethod.POST,
        ).respond_with_handler(response_sleeper)
        with pytest.raises(DataAPITimeoutException) as exc:
            cmd.request(
                timeout_context=_TimeoutContext(
                    request_ms=TIMEOUT_PARAM_MS, label="request_timeout_ms"
                )
            )
        assert exc.value.timeout_type == "read"
        assert "request_timeout_ms" in exc.value.text

    @pytest.mark.describe("test of APICommander timeout, async")
    async def test_apicommander_timeout_async(self, httpserver: HTTPServer) -> None:
        cmd = APICommander(
            api_endpoint=httpserver.url_for("/"),
            path=BASE_PATH,
        )

        httpserver.expect_oneshot_request(
            BASE_PATH,
            method=HttpMethod.POST,
        ).respond_with_handler(response_sleeper)
        with pytest.raises(DataAPITimeoutException):
            await cmd.async_request(
                timeout_context=_TimeoutContext(request_ms=TIMEOUT_PARAM_MS)
            )
