# -*- coding: utf-8 -*-
# Copyright (c) 2024 OSU Natural Language Processing Group
#
# Licensed under the OpenRAIL-S License;
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.licenses.ai/ai-pubs-open-rails-vz1
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


class ReplayActError(Exception):
    """Base class for every error raised by replayact."""


class AgentAlreadyRunningError(ReplayActError):
    def __init__(self, message="Agent is already running"):
        super().__init__(message)


class PageContextError(ReplayActError):
    """No usable page: missing tab, closed page or a browser-internal URL."""


class CaptureError(ReplayActError):
    pass


class BridgeError(ReplayActError):
    """A page-context request failed or the page never answered."""

    def __init__(self, message, kind=None):
        super().__init__(message)
        self.kind = kind


class DecisionError(ReplayActError):
    pass


class DecisionParseError(DecisionError):
    """The decision payload could not be turned into an action. Not retried."""


class DecisionTransportError(DecisionError):
    """The decision service could not be reached or refused the request. Retried with backoff."""


class DecisionSourceExhaustedError(DecisionError):
    def __init__(self, attempts, cause):
        super().__init__(f"Decision source failed after {attempts} attempts: {cause}")
        self.attempts = attempts
        self.cause = cause


class TraceFrozenError(ReplayActError):
    pass


class BackendError(ReplayActError):
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code
