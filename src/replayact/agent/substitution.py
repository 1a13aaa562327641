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
"""
``{{FIELD}}`` placeholder substitution for replaying a recorded trace
against one listing.
"""
import logging
import re
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

from replayact.agent.actions import Action

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")

# token (lower-cased) -> Listing attribute
CANONICAL_FIELDS = {
    "address": "address",
    "city": "city",
    "state": "state",
    "zip": "zip_code",
    "zipcode": "zip_code",
    "price": "price",
    "bedrooms": "bedrooms",
    "bathrooms": "bathrooms",
    "squarefeet": "square_feet",
    "description": "description",
    "mlsnumber": "mls_number",
}

_CAMEL_KEYS = {
    "zipCode": "zip_code",
    "squareFeet": "square_feet",
    "mlsNumber": "mls_number",
    "listingData": "listing_data",
}


@dataclass
class Listing:
    id: Optional[str] = None
    address: Any = None
    city: Any = None
    state: Any = None
    zip_code: Any = None
    price: Any = None
    bedrooms: Any = None
    bathrooms: Any = None
    square_feet: Any = None
    description: Any = None
    mls_number: Any = None
    listing_data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data):
        """Accept camelCase or snake_case keys; anything unknown goes into ``listing_data``."""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        bag = dict(data.get("listing_data") or data.get("listingData") or {})
        for key, value in data.items():
            name = _CAMEL_KEYS.get(key, key)
            if name == "listing_data":
                continue
            if name in known:
                kwargs[name] = value
            else:
                bag[key] = value
        if kwargs.get("id") is not None:
            kwargs["id"] = str(kwargs["id"])
        return cls(listing_data=bag, **kwargs)

    def lookup(self, token):
        name = token.lower()
        attr = CANONICAL_FIELDS.get(name)
        if attr is not None:
            value = getattr(self, attr)
            if value not in (None, ""):
                return value
        for key in (token, name):
            value = self.listing_data.get(key)
            if value not in (None, ""):
                return value
        return None


def _as_listing(record):
    if record is None:
        return Listing()
    if isinstance(record, Listing):
        return record
    return Listing.from_mapping(record)


def substitute_with_report(text, record):
    """Return the substituted text and the list of tokens left unresolved."""
    listing = _as_listing(record)
    unresolved = []

    def _replace(match):
        value = listing.lookup(match.group(1))
        if value is None:
            unresolved.append(match.group(1))
            return match.group(0)
        return str(value)

    return PLACEHOLDER_PATTERN.sub(_replace, text), unresolved


def substitute(text, record):
    result, unresolved = substitute_with_report(text, record)
    if unresolved:
        logger.warning(f"Unresolved placeholders left literal: {', '.join(unresolved)}")
    return result


def substitute_action(action: Action, record):
    """
    Substitute every string field of an action.

    Returns ``(new_action, unresolved_tokens)``; non-string fields and the
    input action are left untouched.
    """
    listing = _as_listing(record)
    changes = {}
    unresolved = []
    for name in ("selector", "text", "url", "filepath", "key"):
        value = getattr(action, name)
        if isinstance(value, str):
            new_value, missing = substitute_with_report(value, listing)
            unresolved.extend(missing)
            if new_value != value:
                changes[name] = new_value
    if unresolved:
        logger.warning(f"Unresolved placeholders in {action.name}: {', '.join(unresolved)}")
    return (action.with_fields(**changes) if changes else action), unresolved
