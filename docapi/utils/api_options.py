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
from typing import Iterable, Sequence

from docapi.constants import CallerType
from docapi.settings.defaults import (
    DEFAULT_API_PATH,
    DEFAULT_API_VERSION,
    DEFAULT_GENERAL_METHOD_TIMEOUT_MS,
    DEFAULT_INSERT_MANY_CHUNK_SIZE,
    DEFAULT_INSERT_MANY_CONCURRENCY,
    DEFAULT_REQUEST_TIMEOUT_MS,
    FIXED_SECRET_PLACEHOLDER,
)
from docapi.utils.unset import _UNSET, UnsetType


@dataclass
class TimeoutOptions:
    """
    The group of settings for the API Options concerning the configured timeouts
    for the data operations.

    All timeout values are integers expressed in milliseconds. A timeout of zero
    signifies that no timeout is imposed at all on that kind of operation.

    All methods that issue HTTP requests allow for a per-invocation override
    of the relevant timeouts involved (see the method docstring and signature
    for details).

    Values left unspecified keep the values inherited from the parent "spawner"
    object. See the `APIOptions` master object for more information.

    Attributes:
        request_timeout_ms: the timeout imposed on a single HTTP request.
            Defaults to 10 s.
        general_method_timeout_ms: a timeout on the overall duration of a
            method invocation. For single-request methods (such as `find_one`)
            this coincides with `request_timeout_ms`, and the minimum of the two
            is used. For methods comprising several HTTP requests (for example
            `insert_many` or `delete_many`), this limits the overall duration of
            the method invocation, while each request is still bound by
            `request_timeout_ms`, separately. Defaults to 30 s.
    """

    request_timeout_ms: int | UnsetType = _UNSET
    general_method_timeout_ms: int | UnsetType = _UNSET


@dataclass
class FullTimeoutOptions(TimeoutOptions):
    """
    The "full" version of `TimeoutOptions`, with the guarantee that all of its
    members have defined values. This is what Database, Collection and Table
    objects carry in their `.api_options` attribute.

    Attributes:
        request_timeout_ms: the timeout imposed on a single HTTP request.
        general_method_timeout_ms: a timeout on the overall duration of a
            method invocation.
    """

    request_timeout_ms: int
    general_method_timeout_ms: int

    def __init__(
        self,
        *,
        request_timeout_ms: int,
        general_method_timeout_ms: int,
    ) -> None:
        TimeoutOptions.__init__(
            self,
            request_timeout_ms=request_timeout_ms,
            general_method_timeout_ms=general_method_timeout_ms,
        )

    def with_override(self, other: TimeoutOptions) -> FullTimeoutOptions:
        """
        Given an "overriding" set of options, possibly not defined in all its
        attributes, apply the override logic and return a new full options object.

        Args:
            other: a not-necessarily-fully-specified options object. All its defined
                settings take precedence.
        """

        return FullTimeoutOptions(
            request_timeout_ms=(
                other.request_timeout_ms
                if not isinstance(other.request_timeout_ms, UnsetType)
                else self.request_timeout_ms
            ),
            general_method_timeout_ms=(
                other.general_method_timeout_ms
                if not isinstance(other.general_method_timeout_ms, UnsetType)
                else self.general_method_timeout_ms
            ),
        )


@dataclass
class APIOptions:
    """
    A class representing the options that can be customized by the user
    when spawning Database, Collection and Table objects.

    Values that are left unspecified are inherited from the "spawner" object
    (e.g. a Collection inherits from the Database it is obtained from),
    according to the `FullAPIOptions.with_override` logic.

    Attributes:
        callers: a list of caller identities, each a (name, version) pair,
            to be composed into the User-Agent header of requests.
        database_additional_headers: free-form dictionary of headers to add
            to all Data API requests. Merged, not replaced, on override.
            A value of None removes the header.
        redacted_header_names: names of headers whose values are never logged.
            Merged, not replaced, on override.
        token: the authentication token sent with each request.
        timeout_options: a `TimeoutOptions` object.
        insert_many_chunk_size: the number of items sent in each `insertMany`
            request. Defaults to 50.
        insert_many_concurrency: the maximum number of `insertMany` requests
            in flight at any given time for unordered insertions.
            Defaults to 20.
    """

    callers: Sequence[CallerType] | UnsetType = _UNSET
    database_additional_headers: dict[str, str | None] | UnsetType = _UNSET
    redacted_header_names: set[str] | UnsetType = _UNSET
    token: str | None | UnsetType = _UNSET
    timeout_options: TimeoutOptions | UnsetType = _UNSET
    insert_many_chunk_size: int | UnsetType = _UNSET
    insert_many_concurrency: int | UnsetType = _UNSET

    def __init__(
        self,
        *,
        callers: Sequence[CallerType] | UnsetType = _UNSET,
        database_additional_headers: dict[str, str | None] | UnsetType = _UNSET,
        redacted_header_names: Iterable[str] | UnsetType = _UNSET,
        token: str | None | UnsetType = _UNSET,
        timeout_options: TimeoutOptions | UnsetType = _UNSET,
        insert_many_chunk_size: int | UnsetType = _UNSET,
        insert_many_concurrency: int | UnsetType = _UNSET,
    ) -> None:
        self.callers = callers
        self.database_additional_headers = database_additional_headers
        self.redacted_header_names = (
            _UNSET
            if isinstance(redacted_header_names, UnsetType)
            else set(redacted_header_names)
        )
        self.token = token
        self.timeout_options = timeout_options
        self.insert_many_chunk_size = insert_many_chunk_size
        self.insert_many_concurrency = insert_many_concurrency

    def __repr__(self) -> str:
        # special items
        _redacted_header_names = (
            {
                k: v if k not in self.redacted_header_names else FIXED_SECRET_PLACEHOLDER
                for k, v in self.database_additional_headers.items()
            }
            if not isinstance(self.redacted_header_names, UnsetType)
            and not isinstance(self.database_additional_headers, UnsetType)
            else self.database_additional_headers
        )
        _token_desc = (
            FIXED_SECRET_PLACEHOLDER
            if isinstance(self.token, str) and self.token
            else self.token
        )
        non_unset_pieces = [
            (k, v)
            for k, v in (
                ("callers", self.callers),
                ("database_additional_headers", _redacted_header_names),
                ("redacted_header_names", self.redacted_header_names),
                ("token", _token_desc),
                ("timeout_options", self.timeout_options),
                ("insert_many_chunk_size", self.insert_many_chunk_size),
                ("insert_many_concurrency", self.insert_many_concurrency),
            )
            if not isinstance(v, UnsetType)
        ]
        inner_desc = ", ".join(f"{k}={v}" for k, v in non_unset_pieces)
        return f"{self.__class__.__name__}({inner_desc})"


@dataclass
class FullAPIOptions(APIOptions):
    """
    The "full" version of `APIOptions`, with the guarantee that all of its
    members have defined values.

    This is what Database, Collection and Table carry in their `.api_options`
    attribute. See `APIOptions` for the meaning of the attributes.
    """

    callers: Sequence[CallerType]
    database_additional_headers: dict[str, str | None]
    redacted_header_names: set[str]
    token: str | None
    timeout_options: FullTimeoutOptions
    insert_many_chunk_size: int
    insert_many_concurrency: int

    def __init__(
        self,
        *,
        callers: Sequence[CallerType],
        database_additional_headers: dict[str, str | None],
        redacted_header_names: Iterable[str],
        token: str | None,
        timeout_options: FullTimeoutOptions,
        insert_many_chunk_size: int,
        insert_many_concurrency: int,
    ) -> None:
        APIOptions.__init__(
            self,
            callers=callers,
            database_additional_headers=database_additional_headers,
            redacted_header_names=redacted_header_names,
            token=token,
            timeout_options=timeout_options,
            insert_many_chunk_size=insert_many_chunk_size,
            insert_many_concurrency=insert_many_concurrency,
        )

    def __repr__(self) -> str:
        return APIOptions.__repr__(self)

    def with_override(self, other: APIOptions | None | UnsetType) -> FullAPIOptions:
        """
        Given an "overriding" set of options, possibly not defined in all its
        attributes, apply the override logic and return a new full options object.

        Defined attributes completely replace the pre-existing ones, except
        for `database_additional_headers` and `redacted_header_names`, which
        are merged.

        Args:
            other: a not-necessarily-fully-specified options object. All its defined
                settings take precedence.
        """

        if isinstance(other, UnsetType) or other is None:
            return self

        database_additional_headers: dict[str, str | None]
        redacted_header_names: set[str]
        timeout_options: FullTimeoutOptions

        if isinstance(other.database_additional_headers, UnsetType):
            database_additional_headers = self.database_additional_headers
        else:
            database_additional_headers = {
                **self.database_additional_headers,
                **other.database_additional_headers,
            }
        if isinstance(other.redacted_header_names, UnsetType):
            redacted_header_names = self.redacted_header_names
        else:
            redacted_header_names = (
                self.redacted_header_names | other.redacted_header_names
            )

        if isinstance(other.timeout_options, TimeoutOptions):
            timeout_options = self.timeout_options.with_override(other.timeout_options)
        else:
            timeout_options = self.timeout_options

        return FullAPIOptions(
            callers=(
                other.callers
                if not isinstance(other.callers, UnsetType)
                else self.callers
            ),
            database_additional_headers=database_additional_headers,
            redacted_header_names=redacted_header_names,
            token=other.token if not isinstance(other.token, UnsetType) else self.token,
            timeout_options=timeout_options,
            insert_many_chunk_size=(
                other.insert_many_chunk_size
                if not isinstance(other.insert_many_chunk_size, UnsetType)
                else self.insert_many_chunk_size
            ),
            insert_many_concurrency=(
                other.insert_many_concurrency
                if not isinstance(other.insert_many_concurrency, UnsetType)
                else self.insert_many_concurrency
            ),
        )


defaultTimeoutOptions = FullTimeoutOptions(
    request_timeout_ms=DEFAULT_REQUEST_TIMEOUT_MS,
    general_method_timeout_ms=DEFAULT_GENERAL_METHOD_TIMEOUT_MS,
)


def defaultAPIOptions() -> FullAPIOptions:
    return FullAPIOptions(
        callers=[],
        database_additional_headers={},
        redacted_header_names=set(),
        token=None,
        timeout_options=defaultTimeoutOptions,
        insert_many_chunk_size=DEFAULT_INSERT_MANY_CHUNK_SIZE,
        insert_many_concurrency=DEFAULT_INSERT_MANY_CONCURRENCY,
    )


def default_api_path() -> str:
    return "/".join(
        piece.strip("/") for piece in (DEFAULT_API_PATH, DEFAULT_API_VERSION)
    )
