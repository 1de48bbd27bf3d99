"""
Central Dispatcher.

Routes events arriving on the central bus to their handler by exact match on
source and detail-type. Any account in the organization can publish to the
bus, so only the registered pair reaches a handler; everything else is
dropped here.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .logging_context import ContextLogger
from .models import DispatchResult

logger = logging.getLogger(__name__)

EventHandler = Callable[[dict[str, Any]], Any]


@dataclass(frozen=True)
class Rule:
    """Exact-match routing rule (mirrors an EventBridge event pattern)."""

    name: str
    source: str
    detail_type: str
    handler: EventHandler

    def matches(self, event: dict[str, Any]) -> bool:
        return event.get("source") == self.source and event.get("detail-type") == self.detail_type


class CentralDispatcher:
    """
    Rule-matching router.

    Rules are fixed at construction; dispatch() keeps no state between calls.
    """

    def __init__(self, rules: Optional[list[Rule]] = None, log: Optional[ContextLogger] = None):
        self._rules: list[Rule] = list(rules or [])
        self.log = log or ContextLogger(logger)

    @property
    def rules(self) -> list[Rule]:
        return list(self._rules)

    def register(
        self, name: str, source: str, detail_type: str, handler: EventHandler
    ) -> "CentralDispatcher":
        """Add a rule. Returns self so registrations can be chained."""
        if not source or not detail_type:
            raise ValueError("Rules require both source and detail_type")
        if any(rule.name == name for rule in self._rules):
            raise ValueError(f"Rule already registered: {name}")

        self._rules.append(Rule(name=name, source=source, detail_type=detail_type, handler=handler))
        return self

    def match(self, event: dict[str, Any]) -> Optional[Rule]:
        """Return the first rule matching the event, or None."""
        for rule in self._rules:
            if rule.matches(event):
                return rule
        return None

    def dispatch(self, event: dict[str, Any]) -> DispatchResult:
        """Route one event.

        Handler errors propagate to the caller unchanged.

        Args:
            event: Inbound event (EventBridge shape: source, detail-type, detail)

        Returns:
            DispatchResult; matched=False when the event was ignored
        """
        if not isinstance(event, dict):
            self.log.warning(f"Ignoring non-object event: {type(event).__name__}")
            return DispatchResult(matched=False)

        rule = self.match(event)
        if rule is None:
            self.log.info(
                f"No rule matched source={event.get('source')!r} "
                f"detail-type={event.get('detail-type')!r} "
                f"from account {event.get('account', 'unknown')}; ignoring"
            )
            return DispatchResult(matched=False)

        self.log.info(f"Rule matched: {rule.name}")
        return DispatchResult(matched=True, rule_name=rule.name, result=rule.handler(event))
