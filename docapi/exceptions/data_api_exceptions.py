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

from dataclasses import dataclass
from typing import Any, Sequence

import httpx

from docapi.exceptions.error_descriptors import (
    DataAPIDetailedErrorDescriptor,
    DataAPIErrorDescriptor,
    DataAPIWarningDescriptor,
)
from docapi.settings.defaults import MAX_ERRORS_IN_EXCEPTION_TEXT


def summarize_error_descriptors(
    error_descriptors: Sequence[DataAPIErrorDescriptor],
) -> str:
    """
    Compose a one-line text out of a list of error descriptors, listing
    at most a fixed number of them.
    """
    summaries = [e_d.summary() for e_d in error_descriptors]
    if not summaries:
        return ""
    if len(summaries) == 1:
        return summaries[0]
    shown = summaries[:MAX_ERRORS_IN_EXCEPTION_TEXT]
    _j_summaries = "; ".join(
        f"[{summ_i + 1}] {summ_s}" for summ_i, summ_s in enumerate(shown)
    )
    if len(summaries) > len(shown):
        _j_summaries += f" (and {len(summaries) - len(shown)} more)"
    return f"[{len(summaries)} errors collected] {_j_summaries}"


class DataAPIException(Exception):
    """
    Root of the errors raised by this library about the Data API itself:
    error responses, timeouts, malformed replies, cursor misuse.
    Plain network failures are left as the httpx exceptions they are.
    """

    pass


@dataclass
class DataAPIResponseException(DataAPIException):
    """
    A Data API response came back with HTTP success but carries an "errors"
    field. Single-request methods raise it directly; multi-request methods
    raise one of its cumulative subclasses.

    Attributes:
        text: a text message about the exception.
        command: the payload to the API that led to the response.
        raw_response: the full response from the API.
        error_descriptors: a list of DataAPIErrorDescriptor, one for each
            item in the API response's "errors" field.
        detailed_error_descriptors: a list of DataAPIDetailedErrorDescriptor,
            one per erroring response (exactly one when raised by
            a single-request method).
        warning_descriptors: a list of DataAPIWarningDescriptor, one for each
            item in the API response's "status.warnings" field, if any.
    """

    text: str | None
    command: dict[str, Any] | None
    raw_response: dict[str, Any]
    error_descriptors: list[DataAPIErrorDescriptor]
    detailed_error_descriptors: list[DataAPIDetailedErrorDescriptor]
    warning_descriptors: list[DataAPIWarningDescriptor]

    def __init__(
        self,
        text: str | None,
        *,
        command: dict[str, Any] | None,
        raw_response: dict[str, Any],
        error_descriptors: list[DataAPIErrorDescriptor],
        detailed_error_descriptors: list[DataAPIDetailedErrorDescriptor],
        warning_descriptors: list[DataAPIWarningDescriptor],
    ) -> None:
        super().__init__(text)
        self.text = text
        self.command = command
        self.raw_response = raw_response
        self.error_descriptors = error_descriptors
        self.detailed_error_descriptors = detailed_error_descriptors
        self.warning_descriptors = warning_descriptors

    def __str__(self) -> str:
        return self.text or ""

    @staticmethod
    def from_response(
        *,
        command: dict[str, Any] | None,
        raw_response: dict[str, Any],
    ) -> DataAPIResponseException:
        """Parse a raw response from the API into this exception."""

        detailed_descriptor = DataAPIDetailedErrorDescriptor.from_response(
            command=command,
            raw_response=raw_response,
        )
        return DataAPIResponseException(
            summarize_error_descriptors(detailed_descriptor.error_descriptors),
            command=command,
            raw_response=raw_response,
            error_descriptors=detailed_descriptor.error_descriptors,
            detailed_error_descriptors=[detailed_descriptor],
            warning_descriptors=detailed_descriptor.warning_descriptors,
        )


@dataclass
class DataAPIHttpException(DataAPIException, httpx.HTTPStatusError):
    """
    The Data API answered with a non-2xx HTTP status.

    Still an `httpx.HTTPStatusError` (request and response are available as
    usual), with any "errors" found in the body parsed into descriptors.

    Attributes:
        text: a text message about the exception.
        error_descriptors: a list of all DataAPIErrorDescriptor objects
            found in the response.
    """

    text: str | None
    error_descriptors: list[DataAPIErrorDescriptor]

    def __init__(
        self,
        text: str | None,
        *,
        httpx_error: httpx.HTTPStatusError,
        error_descriptors: list[DataAPIErrorDescriptor],
    ) -> None:
        DataAPIException.__init__(self, text)
        httpx.HTTPStatusError.__init__(
            self,
            message=str(httpx_error),
            request=httpx_error.request,
            response=httpx_error.response,
        )
        self.text = text
        self.httpx_error = httpx_error
        self.error_descriptors = error_descriptors

    def __str__(self) -> str:
        return self.text or str(self.httpx_error)

    @classmethod
    def from_httpx_error(
        cls,
        httpx_error: httpx.HTTPStatusError,
        **kwargs: Any,
    ) -> DataAPIHttpException:
        """Parse a httpx status error into this exception."""

        raw_response: dict[str, Any]
        # the attempt to extract a response structure cannot afford failure.
        try:
            raw_response = httpx_error.response.json() or {}
        except Exception:
            raw_response = {}
        if not isinstance(raw_response, dict):
            raw_response = {}
        error_descriptors = [
            DataAPIErrorDescriptor(error_dict)
            for error_dict in raw_response.get("errors") or []
        ]
        if error_descriptors:
            text = f"{error_descriptors[0].message}. {str(httpx_error)}"
        else:
            text = str(httpx_error)

        return cls(
            text=text,
            httpx_error=httpx_error,
            error_descriptors=error_descriptors,
            **kwargs,
        )


@dataclass
class DataAPITimeoutException(DataAPIException):
    """
    A timeout expired: either while waiting on one HTTP request, or as the
    overall deadline of a method spanning several requests (such as
    insert_many) ran out between two of them.

    Attributes:
        text: a textual description of the error
        timeout_type: "connect", "read", "write" or "pool" for the phase of the
            request that timed out, "generic" for an overall deadline.
        endpoint: the URL of the request that timed out, if any.
        raw_payload: the body of the request that timed out, if any.
    """

    text: str
    timeout_type: str
    endpoint: str | None
    raw_payload: str | None

    def __init__(
        self,
        text: str,
        *,
        timeout_type: str,
        endpoint: str | None,
        raw_payload: str | None,
    ) -> None:
        super().__init__(text)
        self.text = text
        self.timeout_type = timeout_type
        self.endpoint = endpoint
        self.raw_payload = raw_payload


@dataclass
class CursorException(DataAPIException):
    """
    A cursor method was called in a state that does not allow it, such as
    changing the query of a cursor that already fetched data.

    Attributes:
        text: a text message about the exception.
        cursor_state: the name of the state the cursor was in
            ("idle", "started" or "closed").
    """

    text: str
    cursor_state: str

    def __init__(
        self,
        text: str,
        *,
        cursor_state: str,
    ) -> None:
        super().__init__(text)
        self.text = text
        self.cursor_state = cursor_state


@dataclass
class UnexpectedDataAPIResponseException(DataAPIException):
    """
    A Data API response could not be parsed as a JSON object, or lacks
    the fields the command is supposed to return.

    Attributes:
        text: a text message about the exception.
        raw_response: the response returned by the API in the form of a dict.
    """

    text: str
    raw_response: dict[str, Any] | None

    def __init__(
        self,
        text: str,
        raw_response: dict[str, Any] | None,
    ) -> None:
        super().__init__(text)
        self.text = text
        self.raw_response = raw_response
