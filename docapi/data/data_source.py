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

from typing import Any, Callable

from docapi.constants import (
    FilterType,
    ProjectionType,
    SortType,
    normalize_optional_projection,
)
from docapi.data.cumulative_operations import (
    InsertManyExecutor,
    InsertManyResultFactory,
    R,
)
from docapi.data.cursors.cursor import FindCursorOptions
from docapi.data.cursors.query_engine import _FindQueryEngine
from docapi.exceptions import (
    InsertManyException,
    MultiCallTimeoutManager,
    UnexpectedDataAPIResponseException,
    _first_valid_timeout,
    _select_singlereq_timeout_gm,
    _TimeoutContext,
)
from docapi.settings.defaults import DEFAULT_DATA_API_AUTH_HEADER
from docapi.utils.api_commander import APICommander
from docapi.utils.api_options import FullAPIOptions


class _DataSourceHandle:
    """
    What collections and tables (sync and async alike) have in common:
    identity, options, the API commander and the resolution of timeouts.
    Not meant to be instantiated directly.
    """

    def __init__(
        self,
        *,
        api_endpoint: str,
        api_path: str,
        keyspace: str,
        name: str,
        api_options: FullAPIOptions,
    ) -> None:
        self._api_endpoint = api_endpoint
        self._api_path = api_path
        self._keyspace = keyspace
        self._name = name
        self.api_options = api_options
        self._api_commander = self._get_api_commander()

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}(name="{self.name}", '
            f'keyspace="{self.keyspace}", api_endpoint="{self._api_endpoint}", '
            f"api_options={self.api_options})"
        )

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, self.__class__):
            return all(
                [
                    self._api_endpoint == other._api_endpoint,
                    self._api_path == other._api_path,
                    self._keyspace == other._keyspace,
                    self._name == other._name,
                    self.api_options == other.api_options,
                ]
            )
        return False

    def _get_api_commander(self) -> APICommander:
        base_path = "/".join(
            comp.strip("/") for comp in (self._api_path, self._keyspace, self._name)
        )
        return APICommander(
            api_endpoint=self._api_endpoint,
            path=base_path,
            headers={
                DEFAULT_DATA_API_AUTH_HEADER: self.api_options.token,
                **self.api_options.database_additional_headers,
            },
            callers=self.api_options.callers,
            redacted_header_names=self.api_options.redacted_header_names,
        )

    @property
    def name(self) -> str:
        """The name of this object on the database."""
        return self._name

    @property
    def keyspace(self) -> str:
        """The keyspace this object is in."""
        return self._keyspace

    @property
    def full_name(self) -> str:
        """The fully-qualified name, in the form "keyspace.name"."""
        return f"{self._keyspace}.{self._name}"

    # timeout resolution

    def _single_request_timeout(
        self,
        *,
        general_method_timeout_ms: int | None,
        request_timeout_ms: int | None,
        timeout_ms: int | None,
    ) -> _TimeoutContext:
        _request_timeout_ms, _rt_label = _select_singlereq_timeout_gm(
            timeout_options=self.api_options.timeout_options,
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        return _TimeoutContext(request_ms=_request_timeout_ms, label=_rt_label)

    def _multi_request_timeouts(
        self,
        *,
        general_method_timeout_ms: int | None,
        request_timeout_ms: int | None,
        timeout_ms: int | None,
    ) -> tuple[MultiCallTimeoutManager, int, str | None]:
        """Return the overall timeout manager and the per-request timeout (+label)."""
        _general_method_timeout_ms, _gmt_label = _first_valid_timeout(
            (general_method_timeout_ms, "general_method_timeout_ms"),
            (timeout_ms, "timeout_ms"),
            (
                self.api_options.timeout_options.general_method_timeout_ms,
                "general_method_timeout_ms",
            ),
        )
        _request_timeout_ms, _rt_label = _first_valid_timeout(
            (request_timeout_ms, "request_timeout_ms"),
            (self.api_options.timeout_options.request_timeout_ms, "request_timeout_ms"),
        )
        timeout_manager = MultiCallTimeoutManager(
            overall_timeout_ms=_general_method_timeout_ms,
            timeout_label=_gmt_label,
        )
        return timeout_manager, _request_timeout_ms, _rt_label

    def _cursor_request_timeout(
        self, request_timeout_ms: int | None, timeout_ms: int | None
    ) -> int:
        _request_timeout_ms, _ = _first_valid_timeout(
            (request_timeout_ms, "request_timeout_ms"),
            (timeout_ms, "timeout_ms"),
            (self.api_options.timeout_options.request_timeout_ms, "request_timeout_ms"),
        )
        return _request_timeout_ms

    # payloads and responses

    def _find_query_engine(self) -> _FindQueryEngine[Any]:
        return _FindQueryEngine(
            requester=self._api_commander,
            data_source_name=self.name,
        )

    @staticmethod
    def _find_options(
        *,
        filter: FilterType | None,
        projection: ProjectionType | None,
        sort: SortType | None,
        skip: int | None,
        limit: int | None,
        include_similarity: bool | None,
        include_sort_vector: bool | None,
    ) -> FindCursorOptions:
        return FindCursorOptions.create(
            filter=filter,
            sort=sort,
            projection=projection,
            limit=limit,
            skip=skip,
            include_similarity=include_similarity,
            include_sort_vector=include_sort_vector,
        )

    @staticmethod
    def _find_one_payload(
        *,
        filter: FilterType | None,
        projection: ProjectionType | None,
        sort: SortType | None,
        include_similarity: bool | None,
    ) -> dict[str, Any]:
        fo_options = (
            {"includeSimilarity": include_similarity}
            if include_similarity is not None
            else None
        )
        return {
            "findOne": {
                k: v
                for k, v in {
                    "filter": filter or {},
                    "projection": normalize_optional_projection(projection),
                    "options": fo_options,
                    "sort": sort,
                }.items()
                if v is not None
            },
        }

    def _parse_find_one_response(self, fo_response: dict[str, Any]) -> Any:
        if "document" not in (fo_response.get("data") or {}):
            raise UnexpectedDataAPIResponseException(
                text="Faulty response from findOne API command.",
                raw_response=fo_response,
            )
        return fo_response["data"]["document"]

    def _status_field(
        self, response: dict[str, Any], field_name: str, command_name: str
    ) -> Any:
        status = response.get("status") or {}
        if field_name not in status:
            raise self._faulty_response(command_name, response)
        return status[field_name]

    def _insert_many_executor(
        self,
        *,
        ordered: bool,
        chunk_size: int | None,
        concurrency: int | None,
        general_method_timeout_ms: int | None,
        request_timeout_ms: int | None,
        timeout_ms: int | None,
        id_extractor: Callable[[dict[str, Any]], list[Any]],
        result_factory: InsertManyResultFactory[R],
    ) -> InsertManyExecutor[R]:
        timeout_manager, _request_timeout_ms, _rt_label = self._multi_request_timeouts(
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        if concurrency is None:
            if ordered:
                _concurrency = 1
            else:
                _concurrency = self.api_options.insert_many_concurrency
        else:
            _concurrency = concurrency
        if chunk_size is None:
            _chunk_size = self.api_options.insert_many_chunk_size
        else:
            _chunk_size = chunk_size
        return InsertManyExecutor(
            requester=self._api_commander,
            data_source_name=self.name,
            ordered=ordered,
            chunk_size=_chunk_size,
            concurrency=_concurrency,
            id_extractor=id_extractor,
            result_factory=result_factory,
            exception_class=InsertManyException,
            request_timeout_ms=_request_timeout_ms,
            request_timeout_label=_rt_label,
            timeout_manager=timeout_manager,
        )

    def _faulty_response(
        self, command_name: str, response: dict[str, Any]
    ) -> UnexpectedDataAPIResponseException:
        return UnexpectedDataAPIResponseException(
            text=f"Faulty response from {command_name} API command.",
            raw_response=response,
        )
