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
"""Pre-flight check that keeps greetings and chit-chat out of the agent loop."""
import re

HELP_MESSAGE = (
    "I'm your browser automation assistant! Tell me what you want me to do on this page "
    "and I'll learn how to do it.\n\n"
    "For example:\n"
    "- \"Login with username X and password Y\"\n"
    "- \"Fill out this form and submit it\"\n"
    "- \"Add a new listing with these details\"\n\n"
    "Just describe the task naturally and I'll figure it out!"
)

GREETING_PATTERN = re.compile(r"^(hi|hello|hey|good morning|good afternoon|good evening)[\s!.]*$", re.IGNORECASE)

QUESTION_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^what can you do",
        r"^what are you",
        r"^who are you",
        r"^how do you work",
        r"^what is this",
        r"^help$",
        r"^how does this work",
    )
]

ACTION_VERBS = [
    "login", "log in", "sign in", "signin",
    "click", "press", "tap", "select",
    "fill", "enter", "type", "input", "write",
    "submit", "send", "post", "upload",
    "add", "create", "make", "build",
    "go to", "navigate", "open", "visit",
    "find", "search", "look for",
    "download", "save", "export",
    "figure out", "learn", "teach", "show me",
]

SHORT_MESSAGE_LENGTH = 15


def is_just_a_question(message):
    """True when the goal is a greeting or a question about the agent rather than a task."""
    text = (message or "").strip().lower()
    if GREETING_PATTERN.match(text):
        return True
    if any(p.match(text) for p in QUESTION_PATTERNS):
        return True
    if any(verb in text for verb in ACTION_VERBS):
        return False
    # short vague messages are treated as questions
    return len(text) < SHORT_MESSAGE_LENGTH and "workflow" not in text
