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

# Defaults/settings for Database management
DEFAULT_KEYSPACE = "default_keyspace"
DEFAULT_API_PATH = "/api/json"
DEFAULT_API_VERSION = "v1"

# Defaults/settings for Data API requests
DEFAULT_INSERT_MANY_CHUNK_SIZE = 50
DEFAULT_INSERT_MANY_CONCURRENCY = 20
DEFAULT_REQUEST_TIMEOUT_MS = 10000
DEFAULT_GENERAL_METHOD_TIMEOUT_MS = 30000
DEFAULT_DATA_API_AUTH_HEADER = "Token"

# Settings for the aggregate exceptions of multi-request operations
MAX_INSERTED_IDS_IN_REPR = 5
MAX_ERRORS_IN_EXCEPTION_TEXT = 8

# Settings for redacting secrets in string representations and logging
FIXED_SECRET_PLACEHOLDER = "***"
DEFAULT_REDACTED_HEADER_NAMES = {
    DEFAULT_DATA_API_AUTH_HEADER,
}
