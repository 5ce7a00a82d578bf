"""Lookup of host credentials from a pre-populated rule store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional
from urllib.parse import urlparse

from pydantic import Field

from .schema import Credentials, HostType, RecordModel


class HostRule(RecordModel):
    """Single credential rule; unset selectors match anything."""

    host_type: Optional[HostType] = None
    match_host: Optional[str] = None
    base_url: Optional[str] = None
    token: Optional[str] = Field(default=None, repr=False)

    def matches(self, host_type: HostType, url: str) -> bool:
        if self.host_type is not None and self.host_type != host_type:
            return False
        if self.base_url:
            return url.startswith(self.base_url)
        if self.match_host:
            hostname = urlparse(url).hostname or ""
            return hostname == self.match_host.lower()
        return True

    def specificity(self) -> tuple[int, int, int]:
        return (
            len(self.base_url or ""),
            1 if self.match_host else 0,
            1 if self.host_type is not None else 0,
        )


@dataclass(slots=True)
class HostRuleStore:
    """In-memory collection of :class:`HostRule` entries."""

    rules: List[HostRule] = field(default_factory=list)

    @classmethod
    def from_entries(cls, entries: Iterable[Mapping[str, Any]]) -> "HostRuleStore":
        return cls(rules=[HostRule.model_validate(dict(entry)) for entry in entries])

    def add(self, rule: HostRule) -> None:
        self.rules.append(rule)

    def find(self, host_type: HostType, url: str) -> Credentials | None:
        """Return credentials for the most specific rule matching ``url``.

        Rules without a token never produce credentials; the lookup is purely
        in-memory.
        """

        candidates = [rule for rule in self.rules if rule.token and rule.matches(host_type, url)]
        if not candidates:
            return None
        best = max(candidates, key=lambda rule: rule.specificity())
        return Credentials(host_type=host_type, base_url=url, token=best.token)


__all__ = ["HostRule", "HostRuleStore"]
