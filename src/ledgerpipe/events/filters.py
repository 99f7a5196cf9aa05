# SPDX-License-Identifier: Apache-2.0
"""Event filters, both as RPC request payloads and as local matchers.

The live path sends filters to ``getEvents`` so the node does the matching;
the archive path decodes raw ledgers and must match locally. Both use the
same :class:`EventFilter` so the two paths deliver the same events.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ledgerpipe.errors import EventFilterError

from .models import ContractEvent, EventType

MAX_FILTERS = 5
MAX_CONTRACT_IDS = 5
MAX_TOPIC_FILTERS = 5
MAX_TOPIC_SEGMENTS = 4

WILDCARD = "*"
DOUBLE_WILDCARD = "**"

_CONTRACT_ID_RE = re.compile(r"^C[A-Z2-7]{55}$")

TopicFilter = Tuple[str, ...]


class EventFilter:
    """Criteria an event must satisfy to be delivered.

    Args:
        type: Restrict to ``contract`` or ``system`` events. ``None`` matches any type.
        contract_ids: Up to five contract strkeys (``C...``). Empty matches any contract.
        topics: Up to five topic filters. Each is a sequence of one to four
            segments, where a segment is a base64 XDR ``ScVal``, ``"*"`` for any
            single segment, or ``"**"`` (last position only) for any number of
            trailing segments. An event matches when any topic filter matches.
    """

    def __init__(
        self,
        type: Optional[Union[EventType, str]] = None,
        contract_ids: Optional[Sequence[str]] = None,
        topics: Optional[Sequence[Sequence[str]]] = None,
    ) -> None:
        self.type = EventType(type) if type is not None else None
        if self.type is EventType.DIAGNOSTIC:
            raise EventFilterError("Diagnostic events cannot be filtered", data={"type": "diagnostic"})

        self.contract_ids: Tuple[str, ...] = tuple(contract_ids or ())
        if len(self.contract_ids) > MAX_CONTRACT_IDS:
            raise EventFilterError(
                f"At most {MAX_CONTRACT_IDS} contract ids are allowed per filter, "
                f"got {len(self.contract_ids)}"
            )
        for contract_id in self.contract_ids:
            if not _CONTRACT_ID_RE.match(contract_id):
                raise EventFilterError(
                    f"Invalid contract id: {contract_id!r}", data={"contract_id": contract_id}
                )

        self.topics: Tuple[TopicFilter, ...] = tuple(tuple(t) for t in (topics or ()))
        if len(self.topics) > MAX_TOPIC_FILTERS:
            raise EventFilterError(
                f"At most {MAX_TOPIC_FILTERS} topic filters are allowed per filter, "
                f"got {len(self.topics)}"
            )
        for topic_filter in self.topics:
            _validate_topic_filter(topic_filter)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EventFilter:
        """Build a filter from config data (snake_case or RPC camelCase keys)."""
        return cls(
            type=data.get("type"),
            contract_ids=data.get("contract_ids", data.get("contractIds")),
            topics=data.get("topics"),
        )

    def to_rpc(self) -> Dict[str, Any]:
        """Return the ``getEvents`` wire representation."""
        raw: Dict[str, Any] = {}
        if self.type is not None:
            raw["type"] = self.type.value
        if self.contract_ids:
            raw["contractIds"] = list(self.contract_ids)
        if self.topics:
            raw["topics"] = [list(t) for t in self.topics]
        return raw

    # ---------- matching ----------
    def matches_type(self, event_type: EventType) -> bool:
        return self.type is None or self.type == event_type

    def matches_contract_id(self, contract_id: Optional[str]) -> bool:
        if not self.contract_ids:
            return True
        return contract_id in self.contract_ids

    def matches_topics(self, event_topics: Sequence[str]) -> bool:
        if not self.topics:
            return True
        return any(_topic_matches(t, event_topics) for t in self.topics)

    def matches(self, event: ContractEvent) -> bool:
        return (
            self.matches_type(event.type)
            and self.matches_contract_id(event.contract_id)
            and self.matches_topics(event.topic)
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EventFilter):
            return NotImplemented
        return (self.type, self.contract_ids, self.topics) == (
            other.type,
            other.contract_ids,
            other.topics,
        )

    def __hash__(self) -> int:
        return hash((self.type, self.contract_ids, self.topics))

    def __repr__(self) -> str:
        return (
            f"EventFilter(type={self.type.value if self.type else None!r}, "
            f"contract_ids={list(self.contract_ids)!r}, topics={[list(t) for t in self.topics]!r})"
        )


def _validate_topic_filter(topic_filter: TopicFilter) -> None:
    if not 1 <= len(topic_filter) <= MAX_TOPIC_SEGMENTS:
        raise EventFilterError(
            f"A topic filter needs 1 to {MAX_TOPIC_SEGMENTS} segments, got {len(topic_filter)}",
            data={"topic_filter": list(topic_filter)},
        )
    for position, segment in enumerate(topic_filter):
        if not isinstance(segment, str) or not segment:
            raise EventFilterError(
                f"Topic segment {position} must be a non-empty string",
                data={"topic_filter": list(topic_filter)},
            )
        if segment == DOUBLE_WILDCARD and position != len(topic_filter) - 1:
            raise EventFilterError(
                f"{DOUBLE_WILDCARD!r} is only allowed as the last topic segment",
                data={"topic_filter": list(topic_filter)},
            )


def _topic_matches(topic_filter: TopicFilter, event_topics: Sequence[str]) -> bool:
    if not event_topics:
        return False

    for position, event_segment in enumerate(event_topics):
        if position >= len(topic_filter):
            return False
        segment = topic_filter[position]
        if segment == DOUBLE_WILDCARD:
            return True
        if segment == WILDCARD or segment == event_segment:
            continue
        return False

    # Remaining filter segments can only be satisfied by "**" matching nothing
    remaining = topic_filter[len(event_topics) :]
    return not remaining or remaining == (DOUBLE_WILDCARD,)


def validate_filters(filters: Iterable[EventFilter]) -> List[EventFilter]:
    """Return ``filters`` as a list, enforcing the per-request limit."""
    result = list(filters)
    if len(result) > MAX_FILTERS:
        raise EventFilterError(
            f"At most {MAX_FILTERS} filters are allowed, got {len(result)}",
            data={"count": len(result)},
        )
    for item in result:
        if not isinstance(item, EventFilter):
            raise EventFilterError(f"Expected EventFilter, got {type(item).__name__}")
    return result


def matches_any(filters: Sequence[EventFilter], event: ContractEvent) -> bool:
    """True when ``filters`` is empty or at least one filter matches ``event``."""
    if not filters:
        return True
    return any(f.matches(event) for f in filters)


__all__ = [
    "EventFilter",
    "TopicFilter",
    "WILDCARD",
    "DOUBLE_WILDCARD",
    "MAX_FILTERS",
    "validate_filters",
    "matches_any",
]
