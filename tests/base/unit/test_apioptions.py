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

import pytest

from docapi.settings.defaults import FIXED_SECRET_PLACEHOLDER
from docapi.utils.api_options import (
    APIOptions,
    TimeoutOptions,
    defaultAPIOptions,
)


class TestAPIOptions:
    @pytest.mark.describe("test of header inheritance in APIOptions")
    def test_apioptions_headers(self) -> None:
        opts_d = defaultAPIOptions()
        opts_1 = opts_d.with_override(
            APIOptions(
                database_additional_headers={"d": "y", "D": None},
                redacted_header_names={"x", "y"},
            )
        )
        opts_2 = opts_d.with_override(
            APIOptions(
                database_additional_headers={"D": "y"},
                redacted_header_names={"x"},
            )
        ).with_override(
            APIOptions(
                database_additional_headers={"d": "y", "D": None},
                redacted_header_names={"y"},
            )
        )

        assert opts_1 == opts_2
        assert opts_2.database_additional_headers == {"d": "y", "D": None}
        assert opts_2.redacted_header_names == {"x", "y"}

    @pytest.mark.describe("test of unset-value inheritance in APIOptions")
    def test_apioptions_inheritance(self) -> None:
        opts_d = defaultAPIOptions()
        assert opts_d.with_override(None) is opts_d
        assert opts_d.with_override(APIOptions()) == opts_d

        opts_1 = opts_d.with_override(
            APIOptions(
                token="tkn",
                insert_many_chunk_size=7,
                timeout_options=TimeoutOptions(request_timeout_ms=123),
            )
        )
        assert opts_1.token == "tkn"
        assert opts_1.insert_many_chunk_size == 7
        assert opts_1.insert_many_concurrency == opts_d.insert_many_concurrency
        assert opts_1.timeout_options.request_timeout_ms == 123
        assert (
            opts_1.timeout_options.general_method_timeout_ms
            == opts_d.timeout_options.general_method_timeout_ms
        )

        opts_2 = opts_1.with_override(APIOptions(token=None, callers=[("app", "1")]))
        assert opts_2.token is None
        assert opts_2.callers == [("app", "1")]
        assert opts_2.insert_many_chunk_size == 7

    @pytest.mark.describe("test of default values in APIOptions")
    def test_apioptions_defaults(self) -> None:
        opts_d = defaultAPIOptions()
        assert opts_d.insert_many_chunk_size == 50
        assert opts_d.insert_many_concurrency == 20
        assert opts_d.timeout_options.request_timeout_ms == 10000
        assert opts_d.timeout_options.general_method_timeout_ms == 30000
        assert opts_d.token is None
        assert opts_d.callers == []

    @pytest.mark.describe("test of secret redaction in APIOptions repr")
    def test_apioptions_repr(self) -> None:
        opts = defaultAPIOptions().with_override(
            APIOptions(
                token="secret-token",
                database_additional_headers={"h-secret": "abc", "h-plain": "def"},
                redacted_header_names={"h-secret"},
            )
        )
        opts_repr = repr(opts)
        assert "secret-token" not in opts_repr
        assert "abc" not in opts_repr
        assert "def" in opts_repr
        assert FIXED_SECRET_PLACEHOLDER in opts_repr

        partial_repr = repr(APIOptions(insert_many_chunk_size=3))
        assert partial_repr == "APIOptions(insert_many_chunk_size=3)"
