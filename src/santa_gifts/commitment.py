"""Season commitment: one salted leaf per round, one published Merkle root.

Built once, offline, before day 1. The root goes public immediately; the
per-round salts, leaves and proofs stay private until each round reveals.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Sequence, Tuple, Union

from .errors import ConfigurationError
from .hashing import hash_leaf
from .merkle import build_levels, merkle_proof, merkle_root
from .models import RoundSpec
from .project_constants import ADVENT_DAYS, DEFAULT_SEASON, SALT_BYTES

log = logging.getLogger(__name__)

SpecInput = Union[RoundSpec, Mapping[str, Any]]


@dataclass(frozen=True)
class Commitment:
    root: str
    timestamp: str
    season: str

    def to_dict(self) -> Dict[str, Any]:
        return {"root": self.root, "timestamp": self.timestamp, "season": self.season}


@dataclass(frozen=True)
class RoundArtifact:
    day: int
    salt: str
    leaf: str
    proof: Tuple[str, ...]

    @property
    def leaf_index(self) -> int:
        return self.day - 1


@dataclass(frozen=True)
class CommitmentBundle:
    commitment: Commitment
    specs: Tuple[RoundSpec, ...]
    artifacts: Tuple[RoundArtifact, ...]

    @property
    def root(self) -> str:
        return self.commitment.root

    def artifact_for(self, day: int) -> RoundArtifact:
        for a in self.artifacts:
            if a.day == day:
                return a
        raise KeyError(f"No artifact for day {day}")

    def spec_for(self, day: int) -> RoundSpec:
        for s in self.specs:
            if s.day == day:
                return s
        raise KeyError(f"No gift spec for day {day}")

    def private_dict(self) -> Dict[str, Any]:
        """Everything needed to serve reveals later. Keep it secret until the season ends."""
        return {
            **self.commitment.to_dict(),
            "gifts": [
                {
                    "day": a.day,
                    "gift": self.spec_for(a.day).to_dict(),
                    "salt": a.salt,
                    "leaf": a.leaf,
                    "proof": list(a.proof),
                    "leaf_index": a.leaf_index,
                }
                for a in self.artifacts
            ],
        }

    @classmethod
    def from_private_dict(cls, data: Mapping[str, Any], rounds: int = ADVENT_DAYS) -> "CommitmentBundle":
        specs: List[RoundSpec] = []
        artifacts: List[RoundArtifact] = []
        for entry in data["gifts"]:
            spec = RoundSpec.from_dict(entry["gift"], rounds=rounds)
            specs.append(spec)
            artifacts.append(
                RoundArtifact(
                    day=spec.day,
                    salt=entry["salt"],
                    leaf=entry["leaf"],
                    proof=tuple(entry["proof"]),
                )
            )
        return cls(
            commitment=Commitment(
                root=data["root"],
                timestamp=data.get("timestamp", ""),
                season=data.get("season", DEFAULT_SEASON),
            ),
            specs=tuple(specs),
            artifacts=tuple(artifacts),
        )


def generate_salt() -> str:
    return secrets.token_hex(SALT_BYTES)


def generate_salts(rounds: int = ADVENT_DAYS) -> Dict[int, str]:
    return {day: generate_salt() for day in range(1, rounds + 1)}


def _ordered_specs(specs: Sequence[SpecInput], rounds: int) -> List[RoundSpec]:
    parsed = [s if isinstance(s, RoundSpec) else RoundSpec.from_dict(s, rounds=rounds) for s in specs]

    seen: Dict[int, RoundSpec] = {}
    for spec in parsed:
        if not 1 <= spec.day <= rounds:
            raise ConfigurationError(f"Invalid gift day: {spec.day} (expected 1..{rounds})")
        if spec.day in seen:
            raise ConfigurationError(f"Duplicate gift for day {spec.day}")
        seen[spec.day] = spec

    missing = [d for d in range(1, rounds + 1) if d not in seen]
    if missing:
        raise ConfigurationError(f"Gift list must cover days 1..{rounds}; missing {missing}")
    return [seen[d] for d in range(1, rounds + 1)]


def build_commitment(
    specs: Sequence[SpecInput],
    salts: Mapping[int, str],
    season: str = DEFAULT_SEASON,
    timestamp: datetime | None = None,
    rounds: int = ADVENT_DAYS,
) -> CommitmentBundle:
    """
    Commit a full calendar. Fails before producing anything if a day is
    duplicated or missing, params are invalid, or a salt is missing.
    """
    ordered = _ordered_specs(specs, rounds)

    leaves: List[str] = []
    for spec in ordered:
        salt = salts.get(spec.day)
        if not isinstance(salt, str) or not salt:
            raise ConfigurationError(f"Missing salt for day {spec.day}")
        leaves.append(hash_leaf(spec.to_dict(), salt))

    levels = build_levels(leaves)
    root = merkle_root(levels)

    artifacts = tuple(
        RoundArtifact(
            day=spec.day,
            salt=salts[spec.day],
            leaf=leaves[i],
            proof=tuple(merkle_proof(levels, i)),
        )
        for i, spec in enumerate(ordered)
    )

    if timestamp is None:
        timestamp = datetime.now(timezone.utc)

    commitment = Commitment(
        root=root,
        timestamp=timestamp.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        season=season,
    )
    log.info("Committed %d gifts for %s, root %s", len(ordered), season, root)
    return CommitmentBundle(commitment=commitment, specs=tuple(ordered), artifacts=artifacts)
