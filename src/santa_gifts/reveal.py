from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

from .commitment import RoundArtifact
from .errors import RevealNotAvailable
from .models import RoundSpec
from .project_constants import ADVENT_DAYS, DEFAULT_HINT, DEFAULT_SUB_HINT


class RevealPhase(enum.Enum):
    HIDDEN = "hidden"
    HINT_ONLY = "hint_only"
    FULLY_REVEALED = "fully_revealed"


def utc_today(now: datetime | None = None) -> date:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.date()


def round_date(day: int, season_start: date) -> date:
    return season_start + timedelta(days=day - 1)


def season_day(today: date, season_start: date, rounds: int = ADVENT_DAYS) -> Optional[int]:
    """Calendar day number of ``today`` within the season, or None outside it."""
    n = (today - season_start).days + 1
    return n if 1 <= n <= rounds else None


def reveal_phase(
    day: int,
    today: date,
    season_start: date,
    allow_future: bool = False,
) -> RevealPhase:
    """Only the UTC calendar date matters; the time of day never does."""
    if allow_future:
        return RevealPhase.FULLY_REVEALED
    target = round_date(day, season_start)
    if today < target:
        return RevealPhase.HIDDEN
    if today == target:
        return RevealPhase.HINT_ONLY
    return RevealPhase.FULLY_REVEALED


@dataclass(frozen=True)
class Disclosure:
    day: int
    hint: Optional[str] = None
    sub_hint: Optional[str] = None
    gift: Optional[Mapping[str, Any]] = None
    salt: Optional[str] = None
    leaf: Optional[str] = None
    proof: Optional[List[str]] = None
    root: Optional[str] = None

    @property
    def hint_only(self) -> bool:
        return self.gift is None

    def to_dict(self) -> Dict[str, Any]:
        if self.hint_only:
            return {"day": self.day, "hint": self.hint, "sub_hint": self.sub_hint, "hint_only": True}
        return {
            "day": self.day,
            "gift": dict(self.gift or {}),
            "salt": self.salt,
            "leaf": self.leaf,
            "proof": list(self.proof or []),
            "root": self.root,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Disclosure":
        proof = raw.get("proof")
        return cls(
            day=raw.get("day"),
            hint=raw.get("hint"),
            sub_hint=raw.get("sub_hint"),
            gift=raw.get("gift"),
            salt=raw.get("salt"),
            leaf=raw.get("leaf"),
            proof=list(proof) if isinstance(proof, (list, tuple)) else proof,
            root=raw.get("root"),
        )


def disclose(
    spec: RoundSpec,
    artifact: RoundArtifact,
    root: str,
    today: date,
    season_start: date,
    allow_future: bool = False,
) -> Disclosure:
    """
    Hidden: refused. Day of the round: hint and sub-hint only. Any later
    day: the committed gift with its salt, leaf, proof and the root.
    """
    if artifact.day != spec.day:
        raise ValueError(f"Artifact for day {artifact.day} does not belong to day {spec.day}")

    phase = reveal_phase(spec.day, today, season_start, allow_future=allow_future)
    if phase is RevealPhase.HIDDEN:
        raise RevealNotAvailable(
            f"Day {spec.day} is revealed on {round_date(spec.day, season_start).isoformat()}"
        )
    if phase is RevealPhase.HINT_ONLY:
        return Disclosure(
            day=spec.day,
            hint=spec.hint or DEFAULT_HINT,
            sub_hint=spec.sub_hint or DEFAULT_SUB_HINT,
        )
    return Disclosure(
        day=spec.day,
        gift=spec.to_dict(),
        salt=artifact.salt,
        leaf=artifact.leaf,
        proof=list(artifact.proof),
        root=root,
    )
