"""Match classification and grouping policy models."""

from __future__ import annotations

from typing import Dict, List, Literal, Mapping

from pydantic import BaseModel, Field, field_validator, model_validator

MatchComponent = Literal["overall", "name", "contact"]
RecordKindName = Literal["individual", "household", "organization"]


class MatchRule(BaseModel):
    """A conjunction of minimum component scores."""

    minimums: Dict[MatchComponent, float] = Field(..., min_length=1)

    @field_validator("minimums")
    @classmethod
    def _bounded(cls, value: Dict[str, float]) -> Dict[str, float]:
        for component, minimum in value.items():
            if not 0.0 <= minimum <= 1.0:
                raise ValueError(f"minimum for '{component}' must be within [0, 1]")
        return value

    def passes(self, scores: Mapping[str, float | None]) -> bool:
        for component, minimum in self.minimums.items():
            score = scores.get(component)
            if score is None or score < minimum:
                return False
        return True


class MatchCriteria(BaseModel):
    """Disjunction of rules; the criteria pass when any rule passes."""

    rules: List[MatchRule] = Field(..., min_length=1)

    def passes(self, scores: Mapping[str, float | None]) -> bool:
        return any(rule.passes(scores) for rule in self.rules)


def _rules(*specs: Dict[str, float]) -> MatchCriteria:
    return MatchCriteria(rules=[MatchRule(minimums=spec) for spec in specs])


class MatchingPolicy(BaseModel):
    """Thresholds that turn comparison scores into match verdicts."""

    true_match: MatchCriteria = Field(
        default_factory=lambda: _rules(
            {"overall": 0.80, "name": 0.83},
            {"contact": 0.87},
            {"overall": 0.905},
            {"name": 0.875},
        )
    )
    near_match: MatchCriteria = Field(
        default_factory=lambda: _rules(
            {"overall": 0.77, "name": 0.80},
            {"contact": 0.85},
            {"overall": 0.875},
            {"name": 0.845},
        )
    )


class PhaseSpec(BaseModel):
    """One slice of the population that may found groups."""

    name: str = Field(..., min_length=1)
    kinds: List[RecordKindName] = Field(default_factory=list)
    sources: List[str] = Field(
        default_factory=list,
        description="Record sources included in this phase; empty means any source.",
    )

    def includes(self, kind: str, source: str) -> bool:
        if self.kinds and kind not in self.kinds:
            return False
        if self.sources and source not in self.sources:
            return False
        return True


def _default_phases() -> List[PhaseSpec]:
    return [
        PhaseSpec(name="primary-households", kinds=["household"], sources=["crm"]),
        PhaseSpec(name="secondary-households", kinds=["household"], sources=["assessor"]),
        PhaseSpec(name="primary-individuals", kinds=["individual"], sources=["crm"]),
        PhaseSpec(name="secondary-individuals", kinds=["individual"], sources=["assessor"]),
        PhaseSpec(name="primary-organizations", kinds=["organization"], sources=["crm"]),
        PhaseSpec(name="secondary-organizations", kinds=["organization"], sources=["assessor"]),
    ]


class GroupingPolicy(BaseModel):
    """Configuration for multi-phase group construction."""

    phases: List[PhaseSpec] = Field(default_factory=_default_phases, min_length=1)
    flagged_source: str | None = Field(
        default="crm",
        description="Groups containing a member from this source carry source_flag=True.",
    )
    max_workers: int = Field(default=4, ge=1)
    prefetch_factor: int = Field(
        default=2,
        ge=1,
        description="Founder scans kept in flight per worker.",
    )
    build_consensus: bool = Field(default=True)
    sample_size: int | None = Field(
        default=None,
        ge=1,
        description="When set, a stratified sample of the population (by source and kind) is grouped.",
    )
    sample_seed: int = Field(default=12345)

    @model_validator(mode="after")
    def _unique_phase_names(self) -> "GroupingPolicy":
        names = [phase.name for phase in self.phases]
        if len(names) != len(set(names)):
            raise ValueError("phase names must be unique")
        return self


__all__ = [
    "MatchRule",
    "MatchCriteria",
    "MatchingPolicy",
    "PhaseSpec",
    "GroupingPolicy",
]
