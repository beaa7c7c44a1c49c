"""Multi-phase construction of record groups over a population."""

from __future__ import annotations

import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, List, Mapping, Tuple

from ..comparison.records import MatchVerdict, RecordComparator, RecordComparison
from ..config.policies import GroupingPolicy, PhaseSpec, Policies
from ..entities.records import HouseholdRecord, Record
from ..errors import TypeMismatch
from ..utils.helpers import stable_shuffle
from ..utils.logging import get_logger, log_timing
from .consensus import ConsensusBuilder
from .groups import Group, GroupDatabase

_LOGGER = get_logger(module=__name__)

REMAINDER_PHASE = "remaining-records"


@dataclass
class ScoredPair:
    """A founder/candidate comparison that produced a member or near miss."""

    founder_key: str
    candidate_key: str
    comparison: RecordComparison
    verdict: MatchVerdict
    disposition: str = ""


@dataclass
class FounderScan:
    founder_key: str
    matches: List[Tuple[str, RecordComparison, MatchVerdict]] = field(default_factory=list)
    type_mismatches: int = 0
    comparisons: int = 0
    elapsed: float = 0.0


@dataclass
class GroupingResult:
    database: GroupDatabase
    population: Dict[str, Record]
    pairs: List[ScoredPair] = field(default_factory=list)
    stats: Dict[str, object] = field(default_factory=dict)

    @property
    def groups(self) -> List[Group]:
        return self.database.groups


def dedupe_population(records: Iterable[Record]) -> Dict[str, Record]:
    """Key → record in first-seen order; a repeated key keeps its last record."""

    population: Dict[str, Record] = {}
    for record in records:
        if record.key in population:
            _LOGGER.warning("Duplicate record key; keeping the later record", key=record.key)
        population[record.key] = record
    return population


def stratified_sample(population: Mapping[str, Record], size: int, seed: int) -> Dict[str, Record]:
    """Proportional sample per (source, kind) stratum, in population order."""

    if size >= len(population):
        return dict(population)
    strata: Dict[Tuple[str, str], List[str]] = {}
    for key, record in population.items():
        strata.setdefault((record.source, record.kind), []).append(key)

    chosen: set[str] = set()
    total = len(population)
    for index, keys in enumerate(strata.values()):
        quota = max(1, round(size * len(keys) / total))
        chosen.update(stable_shuffle(keys, seed + index)[:quota])
    return {key: record for key, record in population.items() if key in chosen}


class GroupBuilder:
    """Found groups phase by phase and attach matching records to them.

    Founder scans are independent of assignment state, so they run ahead on a
    thread pool inside a bounded window. Their results are applied strictly in
    founder order under the database lock, which keeps the output identical for
    any worker count.
    """

    def __init__(
        self,
        policies: Policies | None = None,
        comparator: RecordComparator | None = None,
        *,
        max_workers: int | None = None,
    ) -> None:
        self.policies = policies or Policies()
        self.policy: GroupingPolicy = self.policies.grouping
        self.comparator = comparator or RecordComparator(self.policies)
        self.max_workers = max_workers or self.policy.max_workers
        self.consensus = ConsensusBuilder(self.comparator, self.policies)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------
    def phases(self) -> List[PhaseSpec]:
        """Configured phases followed by a catch-all phase for anything left over."""

        configured = list(self.policy.phases)
        names = {phase.name for phase in configured}
        remainder = REMAINDER_PHASE
        while remainder in names:
            remainder = f"{remainder}-final"
        return [*configured, PhaseSpec(name=remainder)]

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------
    def scan(self, founder: Record, population: Mapping[str, Record]) -> FounderScan:
        """Compare ``founder`` with every other record and keep true and near matches."""

        started = time.perf_counter()
        result = FounderScan(founder_key=founder.key)
        for key, candidate in population.items():
            if key == founder.key:
                continue
            result.comparisons += 1
            try:
                verdict, comparison = self.comparator.classify(founder, candidate)
            except TypeMismatch as exc:
                result.type_mismatches += 1
                _LOGGER.debug("Skipping incomparable pair", founder=founder.key, candidate=key, error=str(exc))
                continue
            if verdict is not MatchVerdict.NO_MATCH:
                result.matches.append((key, comparison, verdict))
        result.elapsed = time.perf_counter() - started
        return result

    def _absorb_household(self, group: Group, record: Record, population: Mapping[str, Record], database: GroupDatabase) -> None:
        if not isinstance(record, HouseholdRecord):
            return
        for key in record.absorbed_keys():
            if key in population:
                database.absorb(group, key)

    def _apply(
        self,
        phase: PhaseSpec,
        scan: FounderScan,
        population: Mapping[str, Record],
        database: GroupDatabase,
        pairs: List[ScoredPair],
    ) -> bool:
        with database.lock:
            if database.is_assigned(scan.founder_key):
                return False
            founder = population[scan.founder_key]
            group = database.create_group(scan.founder_key, phase.name)
            self._absorb_household(group, founder, population, database)

            for key, comparison, verdict in scan.matches:
                if group.contains(key):
                    continue
                if verdict is MatchVerdict.TRUE_MATCH:
                    if database.add_member(group, key, comparison.overall):
                        self._absorb_household(group, population[key], population, database)
                        pairs.append(ScoredPair(scan.founder_key, key, comparison, verdict, "member"))
                    continue
                if database.add_near_miss(group, key, comparison.overall):
                    pairs.append(ScoredPair(scan.founder_key, key, comparison, verdict, "near_miss"))

            flagged = self.policy.flagged_source
            group.source_flag = flagged is not None and any(
                population[key].source == flagged for key in group.member_keys
            )
            return True

    def _run_phase(
        self,
        phase: PhaseSpec,
        population: Mapping[str, Record],
        database: GroupDatabase,
        pairs: List[ScoredPair],
        executor: ThreadPoolExecutor | None,
    ) -> Dict[str, int]:
        founders = [key for key, record in population.items() if phase.includes(record.kind, record.source)]
        counters = {"candidates": len(founders), "groups": 0, "skipped": 0, "type_mismatches": 0, "comparisons": 0}
        window = self.max_workers * self.policy.prefetch_factor if executor is not None else 1
        pending: Deque[Tuple[str, Future[FounderScan] | FounderScan]] = deque()
        queue = iter(founders)

        def submit_next() -> bool:
            for key in queue:
                if database.is_assigned(key):
                    counters["skipped"] += 1
                    continue
                if executor is None:
                    pending.append((key, self.scan(population[key], population)))
                else:
                    pending.append((key, executor.submit(self.scan, population[key], population)))
                return True
            return False

        while len(pending) < window and submit_next():
            pass
        while pending:
            _, job = pending.popleft()
            scan = job.result() if isinstance(job, Future) else job
            counters["type_mismatches"] += scan.type_mismatches
            counters["comparisons"] += scan.comparisons
            if self._apply(phase, scan, population, database, pairs):
                counters["groups"] += 1
            else:
                counters["skipped"] += 1
            while len(pending) < window and submit_next():
                pass
        return counters

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    def build(self, records: Iterable[Record]) -> GroupingResult:
        population = dedupe_population(records)
        if self.policy.sample_size is not None:
            population = stratified_sample(population, self.policy.sample_size, self.policy.sample_seed)
            _LOGGER.info("Sampled population", size=len(population), seed=self.policy.sample_seed)

        database = GroupDatabase()
        pairs: List[ScoredPair] = []
        phase_stats: Dict[str, Dict[str, int]] = {}
        started = time.perf_counter()

        executor = ThreadPoolExecutor(max_workers=self.max_workers) if self.max_workers > 1 else None
        try:
            for phase in self.phases():
                with log_timing(f"grouping:{phase.name}"):
                    phase_stats[phase.name] = self._run_phase(phase, population, database, pairs, executor)
                _LOGGER.info("Completed grouping phase", phase=phase.name, **phase_stats[phase.name])
        finally:
            if executor is not None:
                executor.shutdown(wait=True, cancel_futures=True)

        if self.policy.build_consensus:
            for group in database.filtered(min_size=2):
                group.consensus = self.consensus.build(group, population)

        unassigned = [key for key in population if not database.is_assigned(key)]
        if unassigned:
            raise RuntimeError(f"{len(unassigned)} records were left without a group")

        stats: Dict[str, object] = {
            "population": len(population),
            "phases": phase_stats,
            "type_mismatches": sum(counter["type_mismatches"] for counter in phase_stats.values()),
            "comparisons": sum(counter["comparisons"] for counter in phase_stats.values()),
            "elapsed_seconds": round(time.perf_counter() - started, 3),
            "max_workers": self.max_workers,
            **database.stats(),
        }
        _LOGGER.info("Built groups", **{key: value for key, value in stats.items() if key != "phases"})
        return GroupingResult(database=database, population=population, pairs=pairs, stats=stats)


__all__ = [
    "GroupBuilder",
    "GroupingResult",
    "FounderScan",
    "ScoredPair",
    "dedupe_population",
    "stratified_sample",
    "REMAINDER_PHASE",
]
