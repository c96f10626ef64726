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
from typing import Any, Sequence

import httpx

from docapi.constants import CallerType
from docapi.exceptions import _TimeoutContext

logger = logging.getLogger(__name__)


class HttpMethod:
    POST = "POST"


def log_request(
    *,
    http_method: str,
    full_url: str,
    redacted_headers: dict[str, str],
    encoded_payload: str | None,
    timeout_context: _TimeoutContext,
) -> None:
    """
    Log, at debug level, an HTTP request about to be sent.

    Args:
        http_method: the HTTP verb of the request (e.g. "POST").
        full_url: the URL of the request.
        redacted_headers: the headers, already purged of secrets.
            Caution, as these will be logged as they are.
        encoded_payload: the JSON payload of the request, if any.
        timeout_context: the timeout the request is subject to.
    """
    if not logger.isEnabledFor(logging.DEBUG):
        return
    logger.debug(f"Request: {http_method} {full_url}")
    logger.debug(f"Request headers: '{redacted_headers}'")
    if encoded_payload is not None:
        logger.debug(f"Request payload: '{encoded_payload}'")
    if timeout_context:
        logger.debug(
            f"Request timeout: {timeout_context.request_ms or '(unset)'} ms "
            f"(nominal: {timeout_context.nominal_ms or '(unset)'} ms"
            f"{', ' + timeout_context.label if timeout_context.label else ''})"
        )


def log_response(response: httpx.Response) -> None:
    """Log, at debug level, the status, headers and body of a response."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    logger.debug(f"Response status code: {response.status_code}")
    logger.debug(f"Response headers: '{dict(response.headers)}'")
    logger.debug(f"Response text: '{response.text}'")


def to_httpx_timeout(timeout_context: _TimeoutContext) -> httpx.Timeout | None:
    # a zero timeout means no timeout
    if not timeout_context.request_ms:
        return None
    return httpx.Timeout(timeout_context.request_ms / 1000)


def redact_headers(
    headers: dict[str, str], redacted_names: set[str], placeholder: str
) -> dict[str, str]:
    upper_redacted = {name.upper() for name in redacted_names}
    return {
        k: v if k.upper() not in upper_redacted else placeholder
        for k, v in headers.items()
    }


def compose_user_agent(callers: Sequence[CallerType]) -> str | None:
    """
    Make a User-Agent string out of a sequence of (name, version) caller pairs,
    skipping nameless callers. Returns None if nothing is left.
    """
    ua_pieces = [
        f"{name}/{version}" if version else f"{name}"
        for name, version in callers
        if name
    ]
    return " ".join(ua_pieces) or None


def payload_command_name(payload: dict[str, Any] | None) -> str:
    if payload:
        return "/".join(sorted(payload.keys()))
    return "(none)"
