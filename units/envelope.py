"""Envelope value type and result substitution for continuation templates."""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Union

from environment.guardrails import EnvelopeError

RESULT_MARKER = "{{result}}"
FIELD_MARKER_RE = re.compile(r"^\{\{result\.(?P<path>[^{}]+)\}\}$")
TASK_SEPARATOR = ":"


@dataclass(frozen=True)
class Envelope:
    """A signal addressed to one unit, consumed by exactly one delivery."""

    receiver: str
    payload: Any = None
    receive: str | None = None
    callback: Envelope | None = None

    @property
    def unit_id(self) -> str:
        return self.receiver.split(TASK_SEPARATOR, 1)[0]

    @property
    def task(self) -> str | None:
        """Explicit `receive` wins over a `unit:task` receiver suffix."""
        if self.receive:
            return self.receive
        _, separator, suffix = self.receiver.partition(TASK_SEPARATOR)
        return suffix if separator and suffix else None

    @property
    def label(self) -> str:
        """Edge label of this hop: `unit:task`, or `unit` when untasked."""
        task = self.task
        return f"{self.unit_id}{TASK_SEPARATOR}{task}" if task else self.unit_id

    @classmethod
    def from_mapping(cls, data: Envelope | Mapping[str, Any]) -> Envelope:
        """Parse `{receiver, receive?, payload?, callback?}` recursively."""
        if isinstance(data, Envelope):
            return data
        if not isinstance(data, Mapping):
            raise EnvelopeError(f"Envelope must be a mapping, got {type(data).__name__}")

        receiver = data.get("receiver")
        if not isinstance(receiver, str) or not receiver.strip():
            raise EnvelopeError(f"Envelope requires a non-empty receiver: {dict(data)}")

        receive = data.get("receive")
        if receive is not None and not isinstance(receive, str):
            raise EnvelopeError(f"Envelope receive must be a string: {receive!r}")

        callback = data.get("callback")
        return cls(
            receiver=receiver.strip(),
            payload=data.get("payload"),
            receive=receive or None,
            callback=cls.from_mapping(callback) if callback is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"receiver": self.receiver, "payload": self.payload}
        if self.receive:
            payload["receive"] = self.receive
        if self.callback is not None:
            payload["callback"] = self.callback.to_dict()
        return payload


ContinuationTemplate = Union[
    Callable[[Any], Union[Envelope, Mapping[str, Any], None]],
    Envelope,
    Mapping[str, Any],
]


def envelope(receiver: str, task: str | None = None, payload: Any = None) -> Envelope:
    """Shorthand for a task-qualified envelope."""
    return Envelope(receiver=receiver, payload=payload, receive=task)


def substitute(template: Any, result: Any) -> Any:
    """Return a fresh copy of `template` with result markers replaced.

    `"{{result}}"` becomes the whole result and `"{{result.a.b}}"` the value
    at that path, or None when the path does not exist.
    """
    if isinstance(template, str):
        if template == RESULT_MARKER:
            return copy.deepcopy(result)
        match = FIELD_MARKER_RE.match(template)
        if match:
            return copy.deepcopy(_resolve_path(result, match.group("path")))
        return template

    if isinstance(template, Mapping):
        return {key: substitute(value, result) for key, value in template.items()}
    if isinstance(template, list):
        return [substitute(item, result) for item in template]
    if isinstance(template, tuple):
        return tuple(substitute(item, result) for item in template)

    return copy.deepcopy(template)


def continue_with(template: ContinuationTemplate, result: Any) -> Envelope | None:
    """Build the next envelope of a chain from a template and a prior result."""
    if isinstance(template, (Envelope, Mapping)):
        base = Envelope.from_mapping(template)
        return Envelope(
            receiver=base.receiver,
            payload=substitute(base.payload, result),
            receive=base.receive,
            callback=base.callback,
        )

    if callable(template):
        produced = template(result)
        if produced is None:
            return None
        return Envelope.from_mapping(produced)

    raise EnvelopeError(f"Unsupported continuation template: {template!r}")


def _resolve_path(value: Any, path: str) -> Any:
    current = value
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(part)
        elif isinstance(current, (list, tuple)):
            try:
                current = current[int(part)]
            except (ValueError, IndexError):
                return None
        else:
            current = getattr(current, part, None)
    return current
