from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

UNKNOWN = "Desconocido"  # explicit sentinel for unknown kind / promoter


@dataclass
class Initiative:
    expediente: str  # e.g. "121/000036" -- natural key
    kind: str = UNKNOWN  # TIPO, e.g. "Proyecto de ley"
    subject: str = ""  # OBJETO / TITULO_LEY
    promoter: str = UNKNOWN  # AUTOR
    submission_date: date | None = None
    qualification_date: date | None = None
    legislature: str = ""
    committee: str = ""  # COMISIONCOMPETENTE
    rapporteurs: str = ""  # PONENTES
    deadlines: str = ""  # PLAZOS
    procedure_text: str = ""  # TRAMITACIONSEGUIDA, multi-line narrative
    outcome: str = ""  # RESULTADOTRAMITACION
    current_situation: str = ""  # SITUACIONACTUAL
    related_keys: list[str] = field(default_factory=list)
    origin_keys: list[str] = field(default_factory=list)
    # Secondary export fields
    supertype: str = ""
    grouping: str = ""
    processing_type: str = ""  # TIPOTRAMITACION, e.g. "Urgente"
    bocg_links: str = ""
    ds_links: str = ""
    procedure_type: str = "tramitacion_ordinaria"  # Congress processing category
    source_file: str = ""


@dataclass(frozen=True)
class TimelineEvent:
    expediente: str
    event_label: str
    start_date: date
    end_date: date | None
    raw_description: str
    order: int  # 1-based emission index


class EdgeKind(str, Enum):
    RELATED = "related"
    ORIGIN = "origin"
    SIMILAR = "similar"


@dataclass(frozen=True)
class RelationshipEdge:
    source_expediente: str
    target_expediente: str
    kind: EdgeKind
    score: float | None = None  # only for SIMILAR

    def __post_init__(self) -> None:
        if self.source_expediente == self.target_expediente:
            raise ValueError(f"self-edge on {self.source_expediente!r}")
        if self.kind is EdgeKind.SIMILAR:
            if self.score is None or not 0.0 <= self.score <= 1.0:
                raise ValueError(f"similar edge needs a score in [0, 1], got {self.score!r}")
        elif self.score is not None:
            raise ValueError(f"{self.kind.value} edges carry no score")


class Stage(str, Enum):
    PROPOSED = "proposed"
    DEBATING = "debating"
    COMMITTEE = "committee"
    VOTING = "voting"
    PASSED = "passed"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    CLOSED = "closed"
    PUBLISHED = "published"


@dataclass(frozen=True)
class StageClassification:
    expediente: str
    stage: Stage
    step: int  # 1 submission .. 5 publication
    reason: dict = field(default_factory=dict)  # JSON-serialisable audit trail


@dataclass(frozen=True)
class PartyAttribution:
    party_id: str  # e.g. "partido_popular", "desconocido"
    name: str
    short_name: str
    confidence: str  # high | medium | low
    method: str  # parliamentary_group | initiative_type | content_analysis | fallback
    color: str = "#999999"


class SkipReason(str, Enum):
    MISSING_KEY = "missing_key"
    UNPARSEABLE_DOCUMENT = "unparseable_document"
    FILE_TOO_LARGE = "file_too_large"
    UNREADABLE_FILE = "unreadable_file"
    NORMALIZE_ERROR = "normalize_error"


@dataclass(frozen=True)
class SkipRecord:
    """A dropped document or entry; failures are data, not exceptions."""

    reason: SkipReason
    source: str = ""  # file path (and entry index when known)
    detail: str = ""
