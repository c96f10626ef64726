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
from typing import Sequence, Union

from typing_extensions import Self

from docapi.exceptions.data_api_exceptions import (
    DataAPIResponseException,
    summarize_error_descriptors,
)
from docapi.exceptions.error_descriptors import DataAPIDetailedErrorDescriptor
from docapi.results import (
    CollectionDeleteResult,
    CollectionInsertManyResult,
    CollectionUpdateResult,
    OperationResult,
    TableInsertManyResult,
)


@dataclass
class CumulativeOperationException(DataAPIResponseException):
    """
    An exception of type DataAPIResponseException (see) occurred
    during an operation that in general spans several requests.
    As such, besides information on the error, it carries the partial
    result accumulated from the successful parts of the operation.

    All attributes are set at construction time.

    Attributes:
        text: a text message about the exception.
        error_descriptors: a list of all DataAPIErrorDescriptor objects
            found across all requests involved in this exception. This is
            exactly the concatenation of the `error_descriptors` of each
            entry in `detailed_error_descriptors`, in order.
        detailed_error_descriptors: a list of DataAPIDetailedErrorDescriptor
            objects, one for each of the erroring requests performed during
            this operation.
        partial_result: an OperationResult object, just like the one that would
            be the return value of the operation, had it succeeded completely.
        command: the payload of the first erroring request.
        raw_response: the response to the first erroring request.
    """

    partial_result: OperationResult

    def __init__(
        self,
        text: str | None,
        *,
        partial_result: OperationResult,
        detailed_error_descriptors: Sequence[DataAPIDetailedErrorDescriptor],
    ) -> None:
        _detailed = list(detailed_error_descriptors)
        first_detailed = _detailed[0] if _detailed else None
        super().__init__(
            text,
            command=first_detailed.command if first_detailed else None,
            raw_response=first_detailed.raw_response if first_detailed else {},
            error_descriptors=[
                error_descriptor
                for detailed_descriptor in _detailed
                for error_descriptor in detailed_descriptor.error_descriptors
            ],
            detailed_error_descriptors=_detailed,
            warning_descriptors=[
                warning_descriptor
                for detailed_descriptor in _detailed
                for warning_descriptor in detailed_descriptor.warning_descriptors
            ],
        )
        self.partial_result = partial_result

    @classmethod
    def from_detailed_descriptors(
        cls,
        detailed_error_descriptors: Sequence[DataAPIDetailedErrorDescriptor],
        *,
        partial_result: OperationResult,
    ) -> Self:
        """
        Build the exception out of the list of erroring responses, composing
        a text that summarizes all errors found in them.
        """
        text = summarize_error_descriptors(
            [
                error_descriptor
                for detailed_descriptor in detailed_error_descriptors
                for error_descriptor in detailed_descriptor.error_descriptors
            ]
        )
        return cls(
            text,
            partial_result=partial_result,
            detailed_error_descriptors=detailed_error_descriptors,
        )


@dataclass
class InsertManyException(CumulativeOperationException):
    """
    An exception of type DataAPIResponseException (see) occurred
    during an insert_many (that in general spans several requests).

    Attributes:
        text: a text message about the exception.
        error_descriptors: a list of all DataAPIErrorDescriptor objects
            found across all requests involved in this exception.
        detailed_error_descriptors: a list of DataAPIDetailedErrorDescriptor
            objects, one for each of the erroring requests.
        partial_result: a CollectionInsertManyResult or TableInsertManyResult
            listing the IDs that were successfully inserted.
    """

    partial_result: Union[CollectionInsertManyResult, TableInsertManyResult]

    def __init__(
        self,
        text: str | None,
        *,
        partial_result: CollectionInsertManyResult | TableInsertManyResult,
        detailed_error_descriptors: Sequence[DataAPIDetailedErrorDescriptor],
    ) -> None:
        super().__init__(
            text,
            partial_result=partial_result,
            detailed_error_descriptors=detailed_error_descriptors,
        )

    def __str__(self) -> str:
        return (
            f"{self.text} (partial result: "
            f"{self.partial_result.inserted_count} inserted)"
        )


@dataclass
class DeleteManyException(CumulativeOperationException):
    """
    An exception of type DataAPIResponseException (see) occurred
    during a delete_many (that in general spans several requests).

    Attributes:
        text: a text message about the exception.
        error_descriptors: a list of all DataAPIErrorDescriptor objects
            found across all requests involved in this exception.
        detailed_error_descriptors: a list of DataAPIDetailedErrorDescriptor
            objects, one for each of the erroring requests.
        partial_result: a CollectionDeleteResult with the count of documents
            deleted before (and by) the erroring request.
    """

    partial_result: CollectionDeleteResult

    def __init__(
        self,
        text: str | None,
        *,
        partial_result: CollectionDeleteResult,
        detailed_error_descriptors: Sequence[DataAPIDetailedErrorDescriptor],
    ) -> None:
        super().__init__(
            text,
            partial_result=partial_result,
            detailed_error_descriptors=detailed_error_descriptors,
        )


@dataclass
class UpdateManyException(CumulativeOperationException):
    """
    An exception of type DataAPIResponseException (see) occurred
    during an update_many (that in general spans several requests).

    Attributes:
        text: a text message about the exception.
        error_descriptors: a list of all DataAPIErrorDescriptor objects
            found across all requests involved in this exception.
        detailed_error_descriptors: a list of DataAPIDetailedErrorDescriptor
            objects, one for each of the erroring requests.
        partial_result: a CollectionUpdateResult with the counts accumulated
            before (and by) the erroring request.
    """

    partial_result: CollectionUpdateResult

    def __init__(
        self,
        text: str | None,
        *,
        partial_result: CollectionUpdateResult,
        detailed_error_descriptors: Sequence[DataAPIDetailedErrorDescriptor],
    ) -> None:
        super().__init__(
            text,
            partial_result=partial_result,
            detailed_error_descriptors=detailed_error_descriptors,
        )
