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
from typing import Any

import deprecation

from docapi import __version__
from docapi.constants import DefaultDocumentType, DefaultRowType
from docapi.data.collection import AsyncCollection, Collection
from docapi.data.table import AsyncTable, Table
from docapi.exceptions import _select_singlereq_timeout_gm, _TimeoutContext
from docapi.settings.defaults import DEFAULT_DATA_API_AUTH_HEADER, DEFAULT_KEYSPACE
from docapi.utils.api_commander import APICommander
from docapi.utils.api_options import (
    APIOptions,
    FullAPIOptions,
    default_api_path,
    defaultAPIOptions,
)
from docapi.utils.unset import _UNSET, UnsetType

logger = logging.getLogger(__name__)

NAMESPACE_DEPRECATION_NOTICE = (
    "The term 'namespace' is being replaced by 'keyspace' throughout the "
    "Data API and the clients. Please use the `keyspace` property instead."
)


def _resolve_api_options(
    *,
    token: str | None | UnsetType,
    api_options: APIOptions | None | UnsetType,
) -> FullAPIOptions:
    return (
        defaultAPIOptions()
        .with_override(api_options)
        .with_override(APIOptions(token=token))
    )


class _DatabaseCommons:
    def __init__(
        self,
        api_endpoint: str,
        *,
        keyspace: str | None,
        api_options: FullAPIOptions,
    ) -> None:
        self.api_endpoint = api_endpoint.strip("/")
        self._keyspace = keyspace or DEFAULT_KEYSPACE
        self.api_options = api_options

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}(api_endpoint="{self.api_endpoint}", '
            f'keyspace="{self.keyspace}", api_options={self.api_options})'
        )

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, self.__class__):
            return all(
                [
                    self.api_endpoint == other.api_endpoint,
                    self.keyspace == other.keyspace,
                    self.api_options == other.api_options,
                ]
            )
        return False

    @property
    def keyspace(self) -> str:
        """
        The keyspace this database uses as target for all commands when
        no method-call-specific keyspace is specified.
        """
        return self._keyspace

    @property
    @deprecation.deprecated(  # type: ignore[misc]
        deprecated_in="0.1.0",
        removed_in="1.0.0",
        current_version=__version__,
        details=NAMESPACE_DEPRECATION_NOTICE,
    )
    def namespace(self) -> str:
        """
        The keyspace this database uses as target for all commands when
        no method-call-specific keyspace is specified.

        *DEPRECATED*: use `keyspace` instead.
        """
        return self._keyspace

    def _command_commander(
        self,
        *,
        keyspace: str | None | UnsetType,
        collection_or_table_name: str | None,
    ) -> APICommander:
        _keyspace: str | None
        if keyspace is None:
            if collection_or_table_name is not None:
                raise ValueError(
                    "Cannot pass collection_or_table_name to database "
                    "`command` on a no-keyspace command"
                )
            _keyspace = None
        elif isinstance(keyspace, UnsetType):
            _keyspace = self.keyspace
        else:
            _keyspace = keyspace
        base_path = "/".join(
            comp.strip("/")
            for comp in (default_api_path(), _keyspace, collection_or_table_name)
            if comp is not None
        )
        return APICommander(
            api_endpoint=self.api_endpoint,
            path=base_path,
            headers={
                DEFAULT_DATA_API_AUTH_HEADER: self.api_options.token,
                **self.api_options.database_additional_headers,
            },
            callers=self.api_options.callers,
            redacted_header_names=self.api_options.redacted_header_names,
        )

    def _command_timeout(
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


class Database(_DatabaseCommons):
    """
    A Data API database. This is the object for doing database-level
    operations and for obtaining Collection and Table objects.
    This class has a synchronous interface.

    Args:
        api_endpoint: the full "API Endpoint" string used to reach the Data API,
            e.g. "https://data-api.example.com".
        token: the authentication token, sent with each request in the
            "Token" header.
        keyspace: the keyspace to use for all operations when not explicitly
            passed to a method. Defaults to "default_keyspace".
        api_options: an APIOptions instance, overriding the default options.

    Example:
        >>> from docapi import Database
        >>> my_db = Database("https://data-api.example.com", token="Tkn-...")
        >>> my_db.command({"findCollections": {}})
        {'status': {'collections': ['my_coll']}}
    """

    def __init__(
        self,
        api_endpoint: str,
        *,
        token: str | None | UnsetType = _UNSET,
        keyspace: str | None = None,
        api_options: APIOptions | None | UnsetType = _UNSET,
    ) -> None:
        super().__init__(
            api_endpoint,
            keyspace=keyspace,
            api_options=_resolve_api_options(token=token, api_options=api_options),
        )

    def with_options(
        self,
        *,
        keyspace: str | None = None,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> Database:
        """
        Create a clone of this database with some changed attributes.

        Args:
            keyspace: this is the keyspace all method calls will target, unless
                one is explicitly specified in the call.
            api_options: any additional options to set for the clone, in the form of
                an APIOptions instance (where one can set just the needed attributes).

        Returns:
            a new `Database` instance.
        """
        return Database(
            self.api_endpoint,
            keyspace=keyspace or self.keyspace,
            api_options=self.api_options.with_override(api_options),
        )

    def to_async(
        self,
        *,
        keyspace: str | None = None,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> AsyncDatabase:
        """
        Create an AsyncDatabase from this one. Save for the arguments
        explicitly provided as overrides, everything else is kept identical
        to this database in the copy.
        """
        return AsyncDatabase(
            self.api_endpoint,
            keyspace=keyspace or self.keyspace,
            api_options=self.api_options.with_override(api_options),
        )

    def get_collection(
        self,
        name: str,
        *,
        keyspace: str | None = None,
        spawn_api_options: APIOptions | UnsetType = _UNSET,
    ) -> Collection[DefaultDocumentType]:
        """
        Spawn a `Collection` object instance representing a collection
        on this database.

        Creating a `Collection` instance does not have any effect on the
        actual state of the database: in other words, no request is issued.

        Args:
            name: the name of the collection.
            keyspace: the keyspace containing the collection. If no keyspace
                is specified, the general setting for this database is used.
            spawn_api_options: a set of options, complete or partial, with the
                API Options to override the defaults inherited from the Database.

        Returns:
            a `Collection` instance, representing the desired collection
            (but without any form of validation).

        Example:
            >>> my_coll = my_db.get_collection("my_collection")
            >>> my_coll.count_documents({}, upper_bound=100)
            41
        """
        return Collection(
            database=self,
            name=name,
            keyspace=keyspace or self.keyspace,
            api_options=self.api_options.with_override(spawn_api_options),
        )

    def get_table(
        self,
        name: str,
        *,
        keyspace: str | None = None,
        spawn_api_options: APIOptions | UnsetType = _UNSET,
    ) -> Table[DefaultRowType]:
        """
        Spawn a `Table` object instance representing a table on this database.
        No request is issued.

        Args:
            name: the name of the table.
            keyspace: the keyspace containing the table. If no keyspace
                is specified, the general setting for this database is used.
            spawn_api_options: a set of options, complete or partial, with the
                API Options to override the defaults inherited from the Database.

        Returns:
            a `Table` instance.
        """
        return Table(
            database=self,
            name=name,
            keyspace=keyspace or self.keyspace,
            api_options=self.api_options.with_override(spawn_api_options),
        )

    def command(
        self,
        body: dict[str, Any],
        *,
        keyspace: str | None | UnsetType = _UNSET,
        collection_or_table_name: str | None = None,
        raise_api_errors: bool = True,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> dict[str, Any]:
        """
        Send a POST request to the Data API for this database with
        an arbitrary, caller-provided payload.

        Args:
            body: a JSON-serializable dictionary, the payload of the request.
            keyspace: the keyspace to use, if any. If unspecified, the working
                keyspace of this database is used. To run a command targeting no
                specific keyspace, pass an explicit `None`: the request URL will
                lack the "/<keyspace>" component.
            collection_or_table_name: if provided, the name is appended at the end
                of the endpoint, for collection- and table-level commands.
                This parameter cannot be used if `keyspace=None` is explicitly provided.
            raise_api_errors: if True, responses with a nonempty 'errors' field
                result in a DataAPIResponseException being raised.
            general_method_timeout_ms: a timeout, in milliseconds, to impose on the
                underlying API request. If not provided, this object's defaults apply.
            request_timeout_ms: an alias for `general_method_timeout_ms`.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a dictionary with the response of the HTTP request.

        Example:
            >>> my_db.command({"countDocuments": {}}, collection_or_table_name="my_coll")
            {'status': {'count': 123}}
        """
        command_commander = self._command_commander(
            keyspace=keyspace,
            collection_or_table_name=collection_or_table_name,
        )
        _cmd_desc = ",".join(sorted(body.keys()))
        logger.info(f"command={_cmd_desc} on {self.__class__.__name__}")
        req_response = command_commander.request(
            payload=body,
            raise_api_errors=raise_api_errors,
            timeout_context=self._command_timeout(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )
        logger.info(f"finished command={_cmd_desc} on {self.__class__.__name__}")
        return req_response


class AsyncDatabase(_DatabaseCommons):
    """
    A Data API database. This is the object for doing database-level
    operations and for obtaining AsyncCollection and AsyncTable objects.
    This class has an asynchronous interface for use with asyncio.

    Args:
        api_endpoint: the full "API Endpoint" string used to reach the Data API.
        token: the authentication token, sent with each request.
        keyspace: the keyspace to use for all operations when not explicitly
            passed to a method. Defaults to "default_keyspace".
        api_options: an APIOptions instance, overriding the default options.

    Example:
        >>> from docapi import AsyncDatabase
        >>> my_async_db = AsyncDatabase("https://data-api.example.com", token="Tkn-...")
        >>> asyncio.run(my_async_db.command({"findCollections": {}}))
        {'status': {'collections': ['my_coll']}}
    """

    def __init__(
        self,
        api_endpoint: str,
        *,
        token: str | None | UnsetType = _UNSET,
        keyspace: str | None = None,
        api_options: APIOptions | None | UnsetType = _UNSET,
    ) -> None:
        super().__init__(
            api_endpoint,
            keyspace=keyspace,
            api_options=_resolve_api_options(token=token, api_options=api_options),
        )

    def with_options(
        self,
        *,
        keyspace: str | None = None,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> AsyncDatabase:
        """Create a clone of this database with some changed attributes."""
        return AsyncDatabase(
            self.api_endpoint,
            keyspace=keyspace or self.keyspace,
            api_options=self.api_options.with_override(api_options),
        )

    def to_sync(
        self,
        *,
        keyspace: str | None = None,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> Database:
        """
        Create a (synchronous) Database from this one. Save for the arguments
        explicitly provided as overrides, everything else is kept identical
        to this database in the copy.
        """
        return Database(
            self.api_endpoint,
            keyspace=keyspace or self.keyspace,
            api_options=self.api_options.with_override(api_options),
        )

    def get_collection(
        self,
        name: str,
        *,
        keyspace: str | None = None,
        spawn_api_options: APIOptions | UnsetType = _UNSET,
    ) -> AsyncCollection[DefaultDocumentType]:
        """
        Spawn an `AsyncCollection` object instance representing a collection
        on this database. No request is issued.
        See `Database.get_collection` for a description of the parameters.
        """
        return AsyncCollection(
            database=self,
            name=name,
            keyspace=keyspace or self.keyspace,
            api_options=self.api_options.with_override(spawn_api_options),
        )

    def get_table(
        self,
        name: str,
        *,
        keyspace: str | None = None,
        spawn_api_options: APIOptions | UnsetType = _UNSET,
    ) -> AsyncTable[DefaultRowType]:
        """
        Spawn an `AsyncTable` object instance representing a table
        on this database. No request is issued.
        """
        return AsyncTable(
            database=self,
            name=name,
            keyspace=keyspace or self.keyspace,
            api_options=self.api_options.with_override(spawn_api_options),
        )

    async def command(
        self,
        body: dict[str, Any],
        *,
        keyspace: str | None | UnsetType = _UNSET,
        collection_or_table_name: str | None = None,
        raise_api_errors: bool = True,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> dict[str, Any]:
        """
        Send a POST request to the Data API for this database with
        an arbitrary, caller-provided payload.
        See `Database.command` for a description of the parameters.
        """
        command_commander = self._command_commander(
            keyspace=keyspace,
            collection_or_table_name=collection_or_table_name,
        )
        _cmd_desc = ",".join(sorted(body.keys()))
        logger.info(f"command={_cmd_desc} on {self.__class__.__name__}")
        async with command_commander:
            req_response = await command_commander.async_request(
                payload=body,
                raise_api_errors=raise_api_errors,
                timeout_context=self._command_timeout(
                    general_method_timeout_ms=general_method_timeout_ms,
                    request_timeout_ms=request_timeout_ms,
                    timeout_ms=timeout_ms,
                ),
            )
        logger.info(f"finished command={_cmd_desc} on {self.__class__.__name__}")
        return req_response


__all__ = [
    "AsyncDatabase",
    "Database",
]
