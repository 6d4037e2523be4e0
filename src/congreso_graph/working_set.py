"""The run-owned working set: initiatives plus everything derived from them."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from .enrichment import Enrichment
from .models import (
    Initiative,
    PartyAttribution,
    RelationshipEdge,
    StageClassification,
    TimelineEvent,
)


@dataclass
class WorkingSet:
    """Everything one run knows, owned by the orchestrator for the run's lifetime.

    Derivation stages get the set (or one initiative) to read and return
    their results; only the orchestrator writes them back here.
    """

    initiatives: dict[str, Initiative] = field(default_factory=dict)  # batch order
    edges: list[RelationshipEdge] = field(default_factory=list)
    timelines: dict[str, list[TimelineEvent]] = field(default_factory=dict)
    classifications: dict[str, StageClassification] = field(default_factory=dict)
    parties: dict[str, PartyAttribution] = field(default_factory=dict)
    enrichments: dict[str, Enrichment] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.initiatives)

    def __contains__(self, expediente: object) -> bool:
        return expediente in self.initiatives

    def edges_by_source(self) -> dict[str, list[RelationshipEdge]]:
        grouped: dict[str, list[RelationshipEdge]] = {}
        for edge in self.edges:
            grouped.setdefault(edge.source_expediente, []).append(edge)
        return grouped

    def edge_counts(self) -> dict[str, int]:
        return dict(Counter(e.kind.value for e in self.edges))

    def stage_distribution(self) -> dict[str, int]:
        return dict(Counter(c.stage.value for c in self.classifications.values()))
