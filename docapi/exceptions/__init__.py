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

import time
from dataclasses import dataclass

import httpx

from docapi.exceptions.cumulative_exceptions import (
    CumulativeOperationException,
    DeleteManyException,
    InsertManyException,
    UpdateManyException,
)
from docapi.exceptions.data_api_exceptions import (
    CursorException,
    DataAPIException,
    DataAPIHttpException,
    DataAPIResponseException,
    DataAPITimeoutException,
    UnexpectedDataAPIResponseException,
)
from docapi.exceptions.error_descriptors import (
    DataAPIDetailedErrorDescriptor,
    DataAPIErrorDescriptor,
    DataAPIWarningDescriptor,
)
from docapi.utils.api_options import FullTimeoutOptions

# httpx timeout classes and the phase of the request each one denotes
_HTTPX_TIMEOUT_TYPES: list[tuple[type[httpx.TimeoutException], str]] = [
    (httpx.ConnectTimeout, "connect"),
    (httpx.ReadTimeout, "read"),
    (httpx.WriteTimeout, "write"),
    (httpx.PoolTimeout, "pool"),
]


def _select_singlereq_timeout_gm(
    *,
    timeout_options: FullTimeoutOptions,
    general_method_timeout_ms: int | None,
    request_timeout_ms: int | None = None,
    timeout_ms: int | None = None,
) -> tuple[int, str | None]:
    """
    Determine the timeout (and the name of the setting it comes from)
    for a method that issues a single request.

    Explicit per-call values, when any is given, win over the options
    and the smallest of them is taken. Otherwise the smaller of the two
    configured timeouts is used.
    """
    explicit = [
        (value, label)
        for value, label in (
            (general_method_timeout_ms, "general_method_timeout_ms"),
            (request_timeout_ms, "request_timeout_ms"),
            (timeout_ms, "timeout_ms"),
        )
        if value is not None
    ]
    if explicit:
        return min(explicit, key=lambda pair: pair[0])
    configured = [
        (timeout_options.request_timeout_ms, "request_timeout_ms"),
        (timeout_options.general_method_timeout_ms, "general_method_timeout_ms"),
    ]
    return min(configured, key=lambda pair: pair[0])


def _first_valid_timeout(
    *items: tuple[int | None, str | None],
) -> tuple[int, str | None]:
    """Pick the first (timeout, label) pair with a non-None timeout, or (0, None)."""
    for value, label in items:
        if value is not None:
            return value, label
    return 0, None


def to_dataapi_timeout_exception(
    httpx_timeout: httpx.TimeoutException,
    timeout_context: _TimeoutContext,
) -> DataAPITimeoutException:
    """Convert a timeout raised by httpx into a DataAPITimeoutException."""
    base_text = str(httpx_timeout) or "timed out"
    honoured_ms = timeout_context.nominal_ms or timeout_context.request_ms
    if not honoured_ms:
        text = base_text
    elif timeout_context.label:
        text = (
            f"{base_text} (timeout honoured: "
            f"{timeout_context.label} = {honoured_ms} ms)"
        )
    else:
        text = f"{base_text} (timeout honoured: {honoured_ms} ms)"

    timeout_type = next(
        (
            type_name
            for exc_class, type_name in _HTTPX_TIMEOUT_TYPES
            if isinstance(httpx_timeout, exc_class)
        ),
        "generic",
    )

    endpoint: str | None = None
    raw_payload: str | None = None
    try:
        request: httpx.Request | None = httpx_timeout.request
    except RuntimeError:
        # no request was attached to the exception
        request = None
    if request is not None:
        endpoint = str(request.url)
        if isinstance(request.content, bytes):
            raw_payload = request.content.decode()
    return DataAPITimeoutException(
        text=text,
        timeout_type=timeout_type,
        endpoint=endpoint,
        raw_payload=raw_payload,
    )


@dataclass
class _TimeoutContext:
    """
    A timeout to apply to one HTTP request, along with what is needed to
    write a meaningful error message should it expire.

    Args:
        request_ms: how long the request may last, in milliseconds. None or
            zero mean no timeout.
        nominal_ms: the timeout as set by the user, which may be larger than
            `request_ms` when the request is one of several sharing an
            overall deadline.
        label: the name of the setting the timeout comes from, such as
            "request_timeout_ms".
    """

    nominal_ms: int | None
    request_ms: int | None
    label: str | None

    def __init__(
        self,
        *,
        request_ms: int | None,
        nominal_ms: int | None = None,
        label: str | None = None,
    ) -> None:
        self.nominal_ms = nominal_ms
        self.request_ms = request_ms
        self.label = label

    def __bool__(self) -> bool:
        return self.nominal_ms is not None or self.request_ms is not None


class MultiCallTimeoutManager:
    """
    Track an overall deadline across the requests of a multi-request method,
    and compute how much time is left for each of them.

    Args:
        overall_timeout_ms: the overall time budget, in milliseconds.
            None or zero mean no deadline.
        timeout_label: the name of the setting the budget comes from,
            for error messages.
    """

    overall_timeout_ms: int | None
    started_ms: int
    deadline_ms: int | None
    timeout_label: str | None

    def __init__(
        self,
        overall_timeout_ms: int | None,
        timeout_label: str | None = None,
    ) -> None:
        self.started_ms = int(time.time() * 1000)
        self.overall_timeout_ms = overall_timeout_ms or None
        self.timeout_label = timeout_label
        self.deadline_ms = (
            None
            if self.overall_timeout_ms is None
            else self.started_ms + self.overall_timeout_ms
        )

    def _expired_exception(self) -> DataAPITimeoutException:
        if self.timeout_label:
            honoured = f"{self.timeout_label} = {self.overall_timeout_ms} ms"
        else:
            honoured = f"{self.overall_timeout_ms} ms"
        return DataAPITimeoutException(
            text=f"Operation timed out (timeout honoured: {honoured}).",
            timeout_type="generic",
            endpoint=None,
            raw_payload=None,
        )

    def remaining_timeout(
        self, cap_time_ms: int | None = None, cap_timeout_label: str | None = None
    ) -> _TimeoutContext:
        """
        Return the timeout context for the next request: the time left before
        the deadline, further limited by `cap_time_ms` if given (a zero cap
        counts as no cap). If the deadline has already passed, raise a
        DataAPITimeoutException instead.
        """
        cap_ms = cap_time_ms or None
        capped = _TimeoutContext(
            nominal_ms=cap_ms,
            request_ms=cap_ms,
            label=cap_timeout_label,
        )
        if self.deadline_ms is None:
            if cap_ms is None:
                return _TimeoutContext(
                    nominal_ms=self.overall_timeout_ms,
                    request_ms=None,
                    label=self.timeout_label,
                )
            return capped

        remaining_ms = self.deadline_ms - int(time.time() * 1000)
        if remaining_ms <= 0:
            raise self._expired_exception()
        if cap_ms is not None and cap_ms < remaining_ms:
            return capped
        return _TimeoutContext(
            nominal_ms=self.overall_timeout_ms,
            request_ms=remaining_ms,
            label=self.timeout_label,
        )


__all__ = [
    "CursorException",
    "CumulativeOperationException",
    "DataAPIDetailedErrorDescriptor",
    "DataAPIErrorDescriptor",
    "DataAPIException",
    "DataAPIHttpException",
    "DataAPIResponseException",
    "DataAPITimeoutException",
    "DataAPIWarningDescriptor",
    "DeleteManyException",
    "InsertManyException",
    "MultiCallTimeoutManager",
    "UnexpectedDataAPIResponseException",
    "UpdateManyException",
]
