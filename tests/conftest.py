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
Main conftest for shared fixtures and type aliases.
"""

from __future__ import annotations

from typing import Any

import pytest

from docapi import AsyncCollection, AsyncTable, Collection, Database, Table
from docapi.constants import DefaultDocumentType, DefaultRowType

from .fake_data_api import FakeDataAPI

DefaultCollection = Collection[DefaultDocumentType]
DefaultAsyncCollection = AsyncCollection[DefaultDocumentType]
DefaultTable = Table[DefaultRowType]
DefaultAsyncTable = AsyncTable[DefaultRowType]

FAKE_API_ENDPOINT = "http://fake-data-api.invalid"
FAKE_KEYSPACE = "fake_keyspace"


def numbered_documents(n: int, *, offset: int = 0) -> list[dict[str, Any]]:
    return [{"_id": f"d{i}", "seq": i} for i in range(offset, offset + n)]


def collection_on(fake_api: FakeDataAPI, name: str = "fake_coll") -> DefaultCollection:
    """A Collection whose requests are served by the provided fake API."""
    collection = Database(
        FAKE_API_ENDPOINT,
        token="fake-token",
        keyspace=FAKE_KEYSPACE,
    ).get_collection(name)
    collection._api_commander = fake_api  # type: ignore[assignment]
    return collection


def async_collection_on(
    fake_api: FakeDataAPI, name: str = "fake_coll"
) -> DefaultAsyncCollection:
    """An AsyncCollection whose requests are served by the provided fake API."""
    acollection = collection_on(fake_api, name=name).to_async()
    acollection._api_commander = fake_api  # type: ignore[assignment]
    return acollection


@pytest.fixture
def fake_api() -> FakeDataAPI:
    return FakeDataAPI(numbered_documents(25), page_size=10)


__all__ = [
    "DefaultAsyncCollection",
    "DefaultAsyncTable",
    "DefaultCollection",
    "DefaultTable",
    "FAKE_API_ENDPOINT",
    "FAKE_KEYSPACE",
    "async_collection_on",
    "collection_on",
    "numbered_documents",
]
