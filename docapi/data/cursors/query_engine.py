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

import logging
from typing import Any, Generic

from docapi.data.cursors.cursor import TRAW, FindCursorOptions, PageState
from docapi.exceptions import UnexpectedDataAPIResponseException, _TimeoutContext
from docapi.utils.api_commander import CommandRequester

logger = logging.getLogger(__name__)


class _FindQueryEngine(Generic[TRAW]):
    """
    The piece of a find cursor that knows how to ask the Data API for one
    page of results and how to read the response. It is stateless: all
    pagination state is held by the cursor and passed in at each call.

    Args:
        requester: the object actually sending the commands (an APICommander).
        data_source_name: name of the collection/table, used in logs.
        command_name: the API command to issue, e.g. "find".
    """

    requester: CommandRequester
    data_source_name: str
    command_name: str

    def __init__(
        self,
        *,
        requester: CommandRequester,
        data_source_name: str,
        command_name: str = "find",
    ) -> None:
        self.requester = requester
        self.data_source_name = data_source_name
        self.command_name = command_name

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}({self.command_name} "
            f"on '{self.data_source_name}')"
        )

    def build_payload(
        self,
        *,
        options: FindCursorOptions,
        page_state: PageState,
        request_sort_vector: bool,
    ) -> dict[str, Any]:
        subpayload = {
            k: v
            for k, v in {
                "filter": options.filter,
                "sort": options.sort,
                "projection": options.projection,
            }.items()
            if v is not None
        }
        f_options = {
            k: v
            for k, v in {
                "limit": options.limit or None,
                "skip": options.skip,
                "includeSimilarity": options.include_similarity,
                "includeSortVector": True if request_sort_vector else None,
                "pageState": page_state.token,
            }.items()
            if v is not None
        }
        if f_options:
            subpayload["options"] = f_options
        return {self.command_name: subpayload}

    def _parse_response(
        self, raw_response: dict[str, Any]
    ) -> tuple[list[TRAW], PageState, dict[str, Any] | None]:
        data = raw_response.get("data") or {}
        if not isinstance(data, dict):
            raise UnexpectedDataAPIResponseException(
                text=f"Faulty response from {self.command_name} API command.",
                raw_response=raw_response,
            )
        items: list[TRAW] = list(data.get("documents") or [])
        next_page_state = PageState.from_next_page_state(data.get("nextPageState"))
        return items, next_page_state, raw_response.get("status")

    def _page_description(self, page_state: PageState) -> str:
        return page_state.token if page_state.token else "(empty page state)"

    def fetch_page(
        self,
        *,
        options: FindCursorOptions,
        page_state: PageState,
        request_sort_vector: bool,
        timeout_context: _TimeoutContext,
    ) -> tuple[list[TRAW], PageState, dict[str, Any] | None]:
        """Run a query for one page and return (items, next page state, response.status)."""
        payload = self.build_payload(
            options=options,
            page_state=page_state,
            request_sort_vector=request_sort_vector,
        )
        _page_str = self._page_description(page_state)
        logger.info(
            f"cursor fetching a page: {_page_str} from {self.data_source_name}"
        )
        raw_response = self.requester.request(
            payload=payload,
            timeout_context=timeout_context,
        )
        logger.info(
            f"cursor finished fetching a page: {_page_str} from {self.data_source_name}"
        )
        return self._parse_response(raw_response)

    async def async_fetch_page(
        self,
        *,
        options: FindCursorOptions,
        page_state: PageState,
        request_sort_vector: bool,
        timeout_context: _TimeoutContext,
    ) -> tuple[list[TRAW], PageState, dict[str, Any] | None]:
        """Run a query for one page and return (items, next page state, response.status)."""
        payload = self.build_payload(
            options=options,
            page_state=page_state,
            request_sort_vector=request_sort_vector,
        )
        _page_str = self._page_description(page_state)
        logger.info(
            f"cursor fetching a page: {_page_str} from {self.data_source_name}"
        )
        raw_response = await self.requester.async_request(
            payload=payload,
            timeout_context=timeout_context,
        )
        logger.info(
            f"cursor finished fetching a page: {_page_str} from {self.data_source_name}"
        )
        return self._parse_response(raw_response)
