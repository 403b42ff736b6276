"""Outbound events: the only things that cross the boundary back to the host."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union


@dataclass(frozen=True)
class LogEvent:
    text: str

    def to_message(self) -> Dict[str, Any]:
        return {"log": self.text}


@dataclass(frozen=True)
class ErrorEvent:
    """Fatal for the invocation it belongs to."""
    text: str

    def to_message(self) -> Dict[str, Any]:
        return {"error": self.text}


@dataclass(frozen=True)
class BalanceUpdateEvent:
    """Signed balance deltas the host applies to its cached wallet balances."""
    wallet: str
    sol_change: Optional[float] = None
    token_change: Optional[float] = None

    def to_message(self) -> Dict[str, Any]:
        update: Dict[str, Any] = {"wallet": self.wallet}
        if self.sol_change is not None:
            update["solChange"] = self.sol_change
        if self.token_change is not None:
            update["tokenChange"] = self.token_change
        return {"balanceUpdate": update}


Event = Union[LogEvent, ErrorEvent, BalanceUpdateEvent]
EventSink = Callable[[Event], None]


@dataclass
class EventRecorder:
    """List-backed sink. Used by the CLI and by tests."""
    events: List[Event] = field(default_factory=list)

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    @property
    def logs(self) -> List[str]:
        return [e.text for e in self.events if isinstance(e, LogEvent)]

    @property
    def errors(self) -> List[str]:
        return [e.text for e in self.events if isinstance(e, ErrorEvent)]

    @property
    def balance_updates(self) -> List[BalanceUpdateEvent]:
        return [e for e in self.events if isinstance(e, BalanceUpdateEvent)]

    def messages(self) -> List[Dict[str, Any]]:
        return [e.to_message() for e in self.events]
