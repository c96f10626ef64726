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
import logging
from types import TracebackType
from typing import Any, Dict, Iterable, Protocol, Sequence, cast

import httpx

from docapi import __version__
from docapi.constants import CallerType
from docapi.exceptions import (
    DataAPIHttpException,
    DataAPIResponseException,
    UnexpectedDataAPIResponseException,
    _TimeoutContext,
    to_dataapi_timeout_exception,
)
from docapi.settings.defaults import (
    DEFAULT_REDACTED_HEADER_NAMES,
    FIXED_SECRET_PLACEHOLDER,
)
from docapi.utils.request_tools import (
    HttpMethod,
    compose_user_agent,
    log_request,
    log_response,
    payload_command_name,
    redact_headers,
    to_httpx_timeout,
)

logger = logging.getLogger(__name__)

DOCAPI_CALLER: CallerType = ("docapi", __version__)


class CommandRequester(Protocol):
    """
    Anything able to send a JSON command to the Data API and return the
    parsed response. This is all the cursors and the multi-request
    operations need to know about the transport.

    With `raise_api_errors=False`, a response carrying an "errors" field is
    returned as is; any other failure (HTTP errors, timeouts, malformed
    responses) is raised.
    """

    def request(
        self,
        *,
        payload: dict[str, Any] | None = None,
        raise_api_errors: bool = True,
        timeout_context: _TimeoutContext | None = None,
    ) -> dict[str, Any]: ...

    async def async_request(
        self,
        *,
        payload: dict[str, Any] | None = None,
        raise_api_errors: bool = True,
        timeout_context: _TimeoutContext | None = None,
    ) -> dict[str, Any]: ...


class APICommander:
    """
    The HTTP-level handler of commands for a given endpoint and path,
    such as a collection or a table. Based on httpx.

    Args:
        api_endpoint: the base URL of the Data API.
        path: the path, relative to the endpoint, where commands are sent.
        headers: additional headers for all requests. None values are skipped.
        callers: (name, version) pairs to compose the User-Agent header.
        redacted_header_names: headers whose value is never written to logs,
            in addition to the token header.
    """

    client = httpx.Client()

    def __init__(
        self,
        *,
        api_endpoint: str,
        path: str,
        headers: dict[str, str | None] = {},
        callers: Sequence[CallerType] = [],
        redacted_header_names: Iterable[str] | None = None,
    ) -> None:
        self.async_client = httpx.AsyncClient()
        self.api_endpoint = api_endpoint.rstrip("/")
        self.path = path.lstrip("/")
        self.headers = headers
        self.callers = callers
        self.redacted_header_names = set(redacted_header_names or [])

        user_agent = compose_user_agent(list(self.callers) + [DOCAPI_CALLER])
        self.full_headers: dict[str, str] = {
            k: v
            for k, v in {
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": user_agent,
                **self.headers,
            }.items()
            if v is not None
        }
        self._loggable_headers = redact_headers(
            self.full_headers,
            self.redacted_header_names | DEFAULT_REDACTED_HEADER_NAMES,
            FIXED_SECRET_PLACEHOLDER,
        )
        self.full_path = ("/".join([self.api_endpoint, self.path])).rstrip("/")

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(api_endpoint={self.api_endpoint}, "
            f"path={self.path}, callers={self.callers})"
        )

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, APICommander):
            return all(
                [
                    self.api_endpoint == other.api_endpoint,
                    self.path == other.path,
                    self.headers == other.headers,
                    self.callers == other.callers,
                    self.redacted_header_names == other.redacted_header_names,
                ]
            )
        else:
            return False

    async def __aenter__(self) -> APICommander:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None = None,
        exc_value: BaseException | None = None,
        traceback: TracebackType | None = None,
    ) -> None:
        await self.async_client.aclose()

    def _copy(
        self,
        api_endpoint: str | None = None,
        path: str | None = None,
        headers: dict[str, str | None] | None = None,
        callers: Sequence[CallerType] | None = None,
        redacted_header_names: Iterable[str] | None = None,
    ) -> APICommander:
        # some care in allowing e.g. {} to override (but not None):
        return APICommander(
            api_endpoint=(
                api_endpoint if api_endpoint is not None else self.api_endpoint
            ),
            path=path if path is not None else self.path,
            headers=headers if headers is not None else self.headers,
            callers=callers if callers is not None else self.callers,
            redacted_header_names=(
                redacted_header_names
                if redacted_header_names is not None
                else self.redacted_header_names
            ),
        )

    @staticmethod
    def _encode_payload(payload: dict[str, Any] | None) -> str | None:
        if payload is None:
            return None
        return json.dumps(
            payload,
            allow_nan=False,
            separators=(",", ":"),
            ensure_ascii=False,
        )

    def _raw_response_to_json(
        self,
        raw_response: httpx.Response,
        raise_api_errors: bool,
        payload: dict[str, Any] | None,
    ) -> dict[str, Any]:
        # try to process the httpx raw response into a JSON or throw a failure
        raw_response_json: dict[str, Any]
        try:
            raw_response_json = cast(Dict[str, Any], json.loads(raw_response.text))
        except ValueError:
            # json() parsing has failed (e.g., empty body)
            raise UnexpectedDataAPIResponseException(
                text=(
                    "Unparseable response from API "
                    f"'{payload_command_name(payload)}' command."
                ),
                raw_response={
                    "raw_response": raw_response.text,
                },
            )
        if not isinstance(raw_response_json, dict):
            raise UnexpectedDataAPIResponseException(
                text=(
                    "Response from API "
                    f"'{payload_command_name(payload)}' command is not a JSON object."
                ),
                raw_response={
                    "raw_response": raw_response.text,
                },
            )

        if raise_api_errors and "errors" in raw_response_json:
            logger.warning(
                f"APICommander about to raise from: {raw_response_json['errors']}"
            )
            raise DataAPIResponseException.from_response(
                command=payload,
                raw_response=raw_response_json,
            )

        warning_messages: list[Any] = (raw_response_json.get("status") or {}).get(
            "warnings"
        ) or []
        for warning_message in warning_messages:
            logger.warning(f"The Data API returned a warning: {warning_message}")

        return raw_response_json

    def _prepare_request(
        self,
        payload: dict[str, Any] | None,
        timeout_context: _TimeoutContext | None,
    ) -> tuple[str | None, _TimeoutContext]:
        _timeout_context = timeout_context or _TimeoutContext(request_ms=None)
        encoded_payload = self._encode_payload(payload)
        log_request(
            http_method=HttpMethod.POST,
            full_url=self.full_path,
            redacted_headers=self._loggable_headers,
            encoded_payload=encoded_payload,
            timeout_context=_timeout_context,
        )
        return encoded_payload, _timeout_context

    @staticmethod
    def _check_status(raw_response: httpx.Response) -> None:
        try:
            raw_response.raise_for_status()
        except httpx.HTTPStatusError as http_exc:
            raise DataAPIHttpException.from_httpx_error(http_exc)
        log_response(raw_response)

    def raw_request(
        self,
        *,
        payload: dict[str, Any] | None = None,
        timeout_context: _TimeoutContext | None = None,
    ) -> httpx.Response:
        encoded_payload, _timeout_context = self._prepare_request(
            payload, timeout_context
        )
        try:
            raw_response = self.client.request(
                method=HttpMethod.POST,
                url=self.full_path,
                content=encoded_payload.encode()
                if encoded_payload is not None
                else None,
                timeout=to_httpx_timeout(_timeout_context),
                headers=self.full_headers,
            )
        except httpx.TimeoutException as timeout_exc:
            raise to_dataapi_timeout_exception(
                timeout_exc, timeout_context=_timeout_context
            )
        self._check_status(raw_response)
        return raw_response

    async def async_raw_request(
        self,
        *,
        payload: dict[str, Any] | None = None,
        timeout_context: _TimeoutContext | None = None,
    ) -> httpx.Response:
        encoded_payload, _timeout_context = self._prepare_request(
            payload, timeout_context
        )
        try:
            raw_response = await self.async_client.request(
                method=HttpMethod.POST,
                url=self.full_path,
                content=encoded_payload.encode()
                if encoded_payload is not None
                else None,
                timeout=to_httpx_timeout(_timeout_context),
                headers=self.full_headers,
            )
        except httpx.TimeoutException as timeout_exc:
            raise to_dataapi_timeout_exception(
                timeout_exc, timeout_context=_timeout_context
            )
        self._check_status(raw_response)
        return raw_response

    def request(
        self,
        *,
        payload: dict[str, Any] | None = None,
        raise_api_errors: bool = True,
        timeout_context: _TimeoutContext | None = None,
    ) -> dict[str, Any]:
        raw_response = self.raw_request(
            payload=payload,
            timeout_context=timeout_context,
        )
        return self._raw_response_to_json(
            raw_response, raise_api_errors=raise_api_errors, payload=payload
        )

    async def async_request(
        self,
        *,
        payload: dict[str, Any] | None = None,
        raise_api_errors: bool = True,
        timeout_context: _TimeoutContext | None = None,
    ) -> dict[str, Any]:
        raw_response = await self.async_raw_request(
            payload=payload,
            timeout_context=timeout_context,
        )
        return self._raw_response_to_json(
            raw_response, raise_api_errors=raise_api_errors, payload=payload
        )
