"""Append-only conversation log and its model-facing wire view."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from loguru import logger

from toolrelay.errors import ConversationInvariantError, ToolArgumentsError

ERROR_KIND_FAILURE = "error"
ERROR_KIND_MAX_ITERATIONS = "max_iterations"


@dataclass(frozen=True)
class ToolRequest:
    """A model-issued tool invocation, correlated by ``id``."""

    id: str
    name: str
    arguments: str = "{}"

    def parse_arguments(self) -> dict[str, Any]:
        raw = self.arguments.strip() or "{}"
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ToolArgumentsError(f"Invalid JSON arguments for {self.name}: {exc.msg}") from exc
        if not isinstance(parsed, dict):
            raise ToolArgumentsError(f"Arguments for {self.name} must be a JSON object")
        return parsed

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class SystemTurn:
    text: str
    presentation_only: bool = field(default=False, init=False)


@dataclass(frozen=True)
class UserTurn:
    text: str
    presentation_only: bool = field(default=False, init=False)


@dataclass(frozen=True)
class AssistantTurn:
    """Model response: final text, tool requests, or both."""

    text: str | None = None
    tool_requests: tuple[ToolRequest, ...] = ()
    presentation_only: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        if self.text is None and not self.tool_requests:
            raise ValueError("AssistantTurn needs text or tool requests")
        ids = [request.id for request in self.tool_requests]
        if len(set(ids)) != len(ids):
            raise ValueError("Tool request ids must be unique within one assistant turn")

    @property
    def has_tool_requests(self) -> bool:
        return bool(self.tool_requests)


@dataclass(frozen=True)
class ToolCallAnnouncement:
    """Display-only notice that a tool call is about to run.

    ``arguments`` is the raw JSON text of the request; sinks decode it for display.
    """

    request_id: str
    tool_name: str
    arguments: str = "{}"
    index: int = 1
    total: int = 1
    presentation_only: bool = field(default=True, init=False)


@dataclass(frozen=True)
class ToolResultTurn:
    request_id: str
    tool_name: str
    output_text: str
    presentation_only: bool = False
    is_error: bool = False


@dataclass(frozen=True)
class ErrorTurn:
    """Visible failure notice ending a cycle."""

    text: str
    kind: str = ERROR_KIND_FAILURE
    presentation_only: bool = field(default=True, init=False)


Turn: TypeAlias = SystemTurn | UserTurn | AssistantTurn | ToolCallAnnouncement | ToolResultTurn | ErrorTurn
Snapshot: TypeAlias = tuple[Turn, ...]
Observer: TypeAlias = Callable[[Snapshot], None]


class Conversation:
    """Single-writer, append-only turn log for one session."""

    def __init__(self, turns: Iterable[Turn] = ()) -> None:
        self._turns: list[Turn] = []
        self._observers: list[Observer] = []
        for turn in turns:
            self._check_append(turn)
            self._turns.append(turn)

    def __len__(self) -> int:
        return len(self._turns)

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    def append(self, turn: Turn) -> None:
        self._check_append(turn)
        self._turns.append(turn)
        self._notify()

    def extend(self, turns: Iterable[Turn]) -> None:
        for turn in turns:
            self.append(turn)

    def snapshot(self) -> Snapshot:
        return tuple(self._turns)

    def wire_view(self) -> Snapshot:
        return tuple(turn for turn in self._turns if not turn.presentation_only)

    def wire_messages(self) -> list[dict[str, Any]]:
        """Render the wire view as chat-completions messages."""
        return [turn_to_message(turn) for turn in self.wire_view()]

    def _check_append(self, turn: Turn) -> None:
        if isinstance(turn, SystemTurn):
            if self._turns:
                raise ConversationInvariantError("System turn must be the first turn")
        elif isinstance(turn, UserTurn | AssistantTurn | ToolCallAnnouncement | ToolResultTurn | ErrorTurn):
            return
        else:
            raise TypeError(f"Unsupported turn type: {type(turn).__name__}")

    def _notify(self) -> None:
        if not self._observers:
            return
        snapshot = self.snapshot()
        for observer in self._observers:
            try:
                observer(snapshot)
            except Exception:
                logger.opt(exception=True).warning("conversation.observer_failed observer={!r}", observer)

    # Serialization

    def to_records(self) -> list[dict[str, Any]]:
        return [{"id": idx, **turn_to_record(turn)} for idx, turn in enumerate(self._turns, start=1)]

    def to_jsonl(self) -> str:
        return "".join(json.dumps(record, ensure_ascii=False) + "\n" for record in self.to_records())

    @classmethod
    def from_records(cls, records: Iterable[dict[str, Any]]) -> Conversation:
        ordered = sorted(records, key=lambda record: record.get("id", 0))
        return cls(turn_from_record(record) for record in ordered)

    @classmethod
    def from_jsonl(cls, text: str) -> Conversation:
        records = [json.loads(line) for line in text.splitlines() if line.strip()]
        return cls.from_records(records)


def turn_to_message(turn: Turn) -> dict[str, Any]:
    if isinstance(turn, SystemTurn):
        return {"role": "system", "content": turn.text}
    if isinstance(turn, UserTurn):
        return {"role": "user", "content": turn.text}
    if isinstance(turn, AssistantTurn):
        message: dict[str, Any] = {"role": "assistant", "content": turn.text}
        if turn.tool_requests:
            message["tool_calls"] = [request.to_wire() for request in turn.tool_requests]
        return message
    if isinstance(turn, ToolResultTurn) and not turn.presentation_only:
        return {
            "role": "tool",
            "tool_call_id": turn.request_id,
            "name": turn.tool_name,
            "content": turn.output_text,
        }
    raise ConversationInvariantError(f"{type(turn).__name__} is not part of the wire view")


def validate_wire_view(turns: Iterable[Turn]) -> None:
    """Check the alternating structure the model endpoint expects."""
    items = list(turns)
    pending: set[str] = set()
    for position, turn in enumerate(items):
        if turn.presentation_only:
            raise ConversationInvariantError(f"Presentation-only turn at position {position}")
        if isinstance(turn, SystemTurn) and position != 0:
            raise ConversationInvariantError("System turn must lead the wire view")
        if isinstance(turn, ToolResultTurn):
            if turn.request_id not in pending:
                raise ConversationInvariantError(f"Unmatched tool result {turn.request_id}")
            pending.discard(turn.request_id)
            continue
        if pending:
            raise ConversationInvariantError(f"Missing tool results for {sorted(pending)}")
        if isinstance(turn, AssistantTurn):
            pending = {request.id for request in turn.tool_requests}
    if pending:
        raise ConversationInvariantError(f"Missing tool results for {sorted(pending)}")


def turn_to_record(turn: Turn) -> dict[str, Any]:
    if isinstance(turn, SystemTurn):
        return {"kind": "system", "payload": {"text": turn.text}}
    if isinstance(turn, UserTurn):
        return {"kind": "user", "payload": {"text": turn.text}}
    if isinstance(turn, AssistantTurn):
        return {
            "kind": "assistant",
            "payload": {
                "text": turn.text,
                "tool_requests": [
                    {"id": request.id, "name": request.name, "arguments": request.arguments}
                    for request in turn.tool_requests
                ],
            },
        }
    if isinstance(turn, ToolCallAnnouncement):
        return {
            "kind": "tool_call",
            "payload": {
                "request_id": turn.request_id,
                "tool_name": turn.tool_name,
                "arguments": turn.arguments,
                "index": turn.index,
                "total": turn.total,
            },
        }
    if isinstance(turn, ToolResultTurn):
        return {
            "kind": "tool_result",
            "payload": {
                "request_id": turn.request_id,
                "tool_name": turn.tool_name,
                "output_text": turn.output_text,
                "presentation_only": turn.presentation_only,
                "is_error": turn.is_error,
            },
        }
    if isinstance(turn, ErrorTurn):
        return {"kind": "error", "payload": {"text": turn.text, "kind": turn.kind}}
    raise TypeError(f"Unsupported turn type: {type(turn).__name__}")


def turn_from_record(record: dict[str, Any]) -> Turn:
    kind = record.get("kind")
    payload = record.get("payload")
    if not isinstance(payload, dict):
        raise ValueError(f"Record payload must be an object: {record!r}")

    match kind:
        case "system":
            return SystemTurn(str(payload["text"]))
        case "user":
            return UserTurn(str(payload["text"]))
        case "assistant":
            requests = tuple(
                ToolRequest(id=str(item["id"]), name=str(item["name"]), arguments=str(item.get("arguments", "{}")))
                for item in payload.get("tool_requests") or []
            )
            return AssistantTurn(text=payload.get("text"), tool_requests=requests)
        case "tool_call":
            return ToolCallAnnouncement(
                request_id=str(payload["request_id"]),
                tool_name=str(payload["tool_name"]),
                arguments=str(payload.get("arguments", "{}")),
                index=int(payload.get("index", 1)),
                total=int(payload.get("total", 1)),
            )
        case "tool_result":
            return ToolResultTurn(
                request_id=str(payload["request_id"]),
                tool_name=str(payload["tool_name"]),
                output_text=str(payload["output_text"]),
                presentation_only=bool(payload.get("presentation_only", False)),
                is_error=bool(payload.get("is_error", False)),
            )
        case "error":
            return ErrorTurn(str(payload["text"]), kind=str(payload.get("kind", ERROR_KIND_FAILURE)))
        case _:
            raise ValueError(f"Unknown turn kind: {kind!r}")
