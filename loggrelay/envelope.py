"""Envelope data model shared by the metric, batching and diode modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Union


def text_value(text: str) -> Dict[str, str]:
    """Return a tag value that carries *text*."""
    return {"text": text}


@dataclass
class CounterPayload:
    """A counter reading: the change since the last emission and a running total."""

    name: str
    delta: int = 0
    total: int = 0


@dataclass
class GaugeEntry:
    """A single gauge measurement with its unit."""

    unit: str
    value: float


@dataclass
class GaugePayload:
    """A set of named gauge measurements."""

    metrics: Dict[str, GaugeEntry] = field(default_factory=dict)


@dataclass
class EventPayload:
    """A free-form event with a title and a body."""

    title: str
    body: str


Payload = Union[CounterPayload, GaugePayload, EventPayload]


@dataclass
class Envelope:
    """A V2 envelope: origin, timestamp, payload and tags."""

    source_id: str = ""
    timestamp: int = 0
    message: Optional[Payload] = None
    deprecated_tags: Dict[str, Dict[str, object]] = field(default_factory=dict)
    instance_id: str = ""

    def text_tags(self) -> Dict[str, str]:
        """Return the tags that hold text values, as plain strings."""
        return {
            key: value["text"]
            for key, value in self.deprecated_tags.items()
            if "text" in value
        }