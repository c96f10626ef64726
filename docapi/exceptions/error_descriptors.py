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
from typing import Any


@dataclass
class DataAPIErrorDescriptor:
    """
    One item of the "errors" list of a Data API response.

    Such errors come in otherwise successful HTTP responses, and may sit
    alongside partial successes (e.g. an insertMany storing all documents
    but a duplicate one).

    Attributes:
        error_code: a string code as found in the API error's "errorCode" field.
        message: the text found in the API error's "message" field.
        title: the text found in the API error's "title" field, if any.
        attributes: a dict with any further key-value pairs returned by the API.
    """

    error_code: str | None
    message: str | None
    title: str | None
    attributes: dict[str, Any]

    _known_dict_fields = {
        "errorCode",
        "message",
        "title",
    }

    def __init__(self, error_dict: dict[str, Any] | str) -> None:
        if isinstance(error_dict, str):
            self.error_code = None
            self.message = error_dict
            self.title = None
            self.attributes = {}
        else:
            self.error_code = error_dict.get("errorCode")
            self.message = error_dict.get("message")
            self.title = error_dict.get("title")
            self.attributes = {
                k: v for k, v in error_dict.items() if k not in self._known_dict_fields
            }

    def __repr__(self) -> str:
        set_fields = [
            (name, value)
            for name, value in (
                ("error_code", self.error_code),
                ("message", self.message),
                ("title", self.title),
                ("attributes", self.attributes),
            )
            if value
        ]
        inner_desc = ", ".join(f"{name}={value!r}" for name, value in set_fields)
        return f"{self.__class__.__name__}({inner_desc})"

    def __str__(self) -> str:
        return self.summary()

    def summary(self) -> str:
        """
        Determine a string succinct description of this descriptor.

        The precise format of this summary is determined by which fields are set.
        """
        text_part = ": ".join(pc for pc in (self.title, self.message) if pc)
        if self.error_code:
            if text_part:
                return f"{text_part} ({self.error_code})"
            return self.error_code
        return text_part


@dataclass
class DataAPIWarningDescriptor(DataAPIErrorDescriptor):
    """
    An object representing a single warning, as returned from the Data API
    in the "status.warnings" field of an otherwise successful response.

    Attributes:
        error_code: a string code found in the API warning's "errorCode" field.
        message: the text found in the API warning's "message" field.
        title: the text found in the API warning's "title" field, if any.
        attributes: a dict with any further key-value pairs returned by the API.
    """

    def __init__(self, error_dict: dict[str, Any] | str) -> None:
        return DataAPIErrorDescriptor.__init__(self, error_dict=error_dict)


@dataclass
class DataAPIDetailedErrorDescriptor:
    """
    An object representing an errorful response from the Data API.
    Errors specific to the Data API (as opposed to e.g. network failures)
    come as "errors" in an otherwise HTTP-200 response: this object
    pairs them with the request that caused them.

    Attributes:
        error_descriptors: a list of DataAPIErrorDescriptor objects, one for
            each item in the response's "errors" field.
        command: the raw payload sent to the Data API that triggered the errors.
        raw_response: the full response from the Data API.
    """

    error_descriptors: list[DataAPIErrorDescriptor]
    command: dict[str, Any] | None
    raw_response: dict[str, Any]

    @staticmethod
    def from_response(
        *,
        command: dict[str, Any] | None,
        raw_response: dict[str, Any],
    ) -> DataAPIDetailedErrorDescriptor:
        return DataAPIDetailedErrorDescriptor(
            error_descriptors=[
                DataAPIErrorDescriptor(error_dict)
                for error_dict in (raw_response or {}).get("errors") or []
            ],
            command=command,
            raw_response=raw_response,
        )

    @property
    def warning_descriptors(self) -> list[DataAPIWarningDescriptor]:
        return [
            DataAPIWarningDescriptor(warning)
            for warning in ((self.raw_response or {}).get("status") or {}).get(
                "warnings"
            )
            or []
        ]
