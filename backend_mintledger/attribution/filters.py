"""
Read-time exclusion filter for cached mint events.

Rules are declarative (JSON, path from MINT_EXCLUSION_RULES_PATH or the bundled
data/exclusion_rules.json), keyed by token address, and evaluated per record;
a record is dropped if any rule for its token matches. Filtering never touches
the cache, so rule edits apply retroactively to reported totals.

Rule kinds:
    exclude_wallets  {"token_address", "wallets": [...]}
    exclude_before   {"token_address", "cutoff": ISO-8601 or unix seconds}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from backend_mintledger.database.models import MintEvent
from backend_mintledger.mintledger_logging import get_logger

logger = get_logger(__name__)

KIND_EXCLUDE_WALLETS = "exclude_wallets"
KIND_EXCLUDE_BEFORE = "exclude_before"


@dataclass(frozen=True)
class ExclusionRule:
    token_address: str
    kind: str
    wallets: frozenset[str] = field(default_factory=frozenset)
    cutoff: int | None = None
    note: str = ""

    def matches(self, event: MintEvent) -> bool:
        if event.token_address != self.token_address:
            return False
        if self.kind == KIND_EXCLUDE_WALLETS:
            return event.wallet_address in self.wallets
        if self.kind == KIND_EXCLUDE_BEFORE:
            return self.cutoff is not None and event.timestamp < self.cutoff
        return False


def _parse_cutoff(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"invalid cutoff: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip():
        s = value.strip()
        if s.isdigit():
            return int(s)
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            raise ValueError(f"cutoff must carry a timezone: {value!r}")
        return int(dt.timestamp())
    raise ValueError(f"invalid cutoff: {value!r}")


def rule_from_dict(item: dict[str, Any]) -> ExclusionRule:
    """Build one rule; raises ValueError on unknown kind or missing fields."""
    kind = (item.get("kind") or "").strip()
    token = (item.get("token_address") or "").strip()
    if not token:
        raise ValueError("exclusion rule needs token_address")
    note = str(item.get("note") or "")
    if kind == KIND_EXCLUDE_WALLETS:
        wallets = [w.strip() for w in item.get("wallets") or [] if isinstance(w, str) and w.strip()]
        if not wallets:
            raise ValueError(f"{KIND_EXCLUDE_WALLETS} rule for {token} has no wallets")
        return ExclusionRule(token_address=token, kind=kind, wallets=frozenset(wallets), note=note)
    if kind == KIND_EXCLUDE_BEFORE:
        return ExclusionRule(
            token_address=token, kind=kind, cutoff=_parse_cutoff(item.get("cutoff")), note=note
        )
    raise ValueError(f"unknown exclusion rule kind: {kind!r}")


class ExclusionRuleSet:
    """Immutable table of rules indexed by token address."""

    def __init__(self, rules: Iterable[ExclusionRule] = ()) -> None:
        self._by_token: dict[str, list[ExclusionRule]] = {}
        for rule in rules:
            self._by_token.setdefault(rule.token_address, []).append(rule)

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_token.values())

    def rules_for(self, token_address: str) -> list[ExclusionRule]:
        return list(self._by_token.get(token_address, ()))

    def is_excluded(self, event: MintEvent) -> bool:
        return any(rule.matches(event) for rule in self._by_token.get(event.token_address, ()))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExclusionRuleSet":
        items = data.get("rules") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise ValueError("exclusion rules document must contain a 'rules' list")
        return cls(rule_from_dict(item) for item in items)

    @classmethod
    def from_file(cls, path: str | Path) -> "ExclusionRuleSet":
        path = Path(path)
        if not path.exists():
            logger.warning("exclusion_rules_missing", path=str(path))
            return cls()
        rules = cls.from_dict(json.loads(path.read_text(encoding="utf-8")))
        logger.info("exclusion_rules_loaded", path=str(path), count=len(rules))
        return rules


def filter_mint_transactions(
    events: Iterable[MintEvent],
    token_address: str,
    rules: ExclusionRuleSet,
) -> list[MintEvent]:
    """Events for token_address minus those any applicable rule excludes. Pure."""
    applicable = rules.rules_for(token_address)
    if not applicable:
        return list(events)
    return [e for e in events if not any(rule.matches(e) for rule in applicable)]


_rules_cache: ExclusionRuleSet | None = None


def load_exclusion_rules(path: str | Path | None = None, *, reload: bool = False) -> ExclusionRuleSet:
    """Rules from path (default: settings). Cached when path is None; reload=True re-reads."""
    global _rules_cache
    if path is not None:
        return ExclusionRuleSet.from_file(path)
    if _rules_cache is None or reload:
        from backend_mintledger.config import get_settings

        _rules_cache = ExclusionRuleSet.from_file(get_settings().exclusion_rules_path)
    return _rules_cache
