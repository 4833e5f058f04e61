from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict


@dataclass
class LoyaltySnapshot:
    visits: Dict[str, int]
    rewards: Dict[str, int]
    tiers: Dict[str, int]
    referrals: Dict[str, int]
    claims: Dict[str, int]
    settings: Dict[str, int]

    def as_dict(self) -> Dict[str, object]:
        return {
            "visits": dict(self.visits),
            "rewards": dict(self.rewards),
            "tiers": dict(self.tiers),
            "referrals": dict(self.referrals),
            "claims": dict(self.claims),
            "settings": dict(self.settings),
        }


class LoyaltyObservabilityStore:
    """In-process counters for the loyalty engine, served by the observability endpoint."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._visits: Dict[str, int] = defaultdict(int)
        self._rewards: Dict[str, int] = defaultdict(int)
        self._tiers: Dict[str, int] = defaultdict(int)
        self._referrals: Dict[str, int] = defaultdict(int)
        self._claims: Dict[str, int] = defaultdict(int)
        self._settings: Dict[str, int] = defaultdict(int)

    def record_visit(self, source: str) -> None:
        with self._lock:
            self._visits["total"] += 1
            self._visits[f"source:{source}"] += 1

    def record_reward_issued(self, kind: str) -> None:
        with self._lock:
            self._rewards["issued"] += 1
            self._rewards[f"kind:{kind}"] += 1

    def record_tier_change(self, from_tier: str, to_tier: str) -> None:
        with self._lock:
            self._tiers["changes"] += 1
            self._tiers[f"{from_tier}_to_{to_tier}"] += 1

    def record_referral_event(self, event: str) -> None:
        with self._lock:
            self._referrals[event] += 1

    def record_claim(self, *, won: bool, channel: str) -> None:
        with self._lock:
            outcome = "won" if won else "lost"
            self._claims[outcome] += 1
            self._claims[f"{channel}:{outcome}"] += 1

    def record_settings_fallback(self, key: str) -> None:
        with self._lock:
            self._settings["fallbacks"] += 1
            self._settings[f"fallback:{key}"] += 1

    def snapshot(self) -> LoyaltySnapshot:
        with self._lock:
            return LoyaltySnapshot(
                visits=dict(self._visits),
                rewards=dict(self._rewards),
                tiers=dict(self._tiers),
                referrals=dict(self._referrals),
                claims=dict(self._claims),
                settings=dict(self._settings),
            )

    def reset(self) -> None:
        with self._lock:
            for bucket in (
                self._visits,
                self._rewards,
                self._tiers,
                self._referrals,
                self._claims,
                self._settings,
            ):
                bucket.clear()


_STORE = LoyaltyObservabilityStore()


def get_loyalty_store() -> LoyaltyObservabilityStore:
    return _STORE


__all__ = ["get_loyalty_store", "LoyaltyObservabilityStore", "LoyaltySnapshot"]
