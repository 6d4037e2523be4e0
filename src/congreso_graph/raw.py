"""Schema for one raw initiative entry as it appears in the open-data exports.

The Congress XML exports use upper-case tag names that changed between
dataset vintages (e.g. the approved-laws dump says ``NUMERO_LEY`` where the
initiatives dump says ``NUMEXPEDIENTE``).  :data:`FIELD_ALIASES` maps each
canonical attribute to its candidate tags, first non-empty one wins.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "expediente": ("NUMEXPEDIENTE", "NUMERO_LEY"),
    "kind": ("TIPO",),
    "subject": ("OBJETO", "TITULO_LEY"),
    "promoter": ("AUTOR",),
    "submission_date": ("FECHAPRESENTACION", "FECHA_LEY"),
    "qualification_date": ("FECHACALIFICACION",),
    "related": ("INICIATIVASRELACIONADAS",),
    "origin": ("INICIATIVASDEORIGEN",),
    "procedure_text": ("TRAMITACIONSEGUIDA",),
    "legislature": ("LEGISLATURA",),
    "supertype": ("SUPERTIPO",),
    "grouping": ("AGRUPACION",),
    "processing_type": ("TIPOTRAMITACION",),
    "outcome": ("RESULTADOTRAMITACION",),
    "current_situation": ("SITUACIONACTUAL",),
    "committee": ("COMISIONCOMPETENTE",),
    "deadlines": ("PLAZOS",),
    "rapporteurs": ("PONENTES",),
    "bocg_links": ("ENLACESBOCG",),
    "ds_links": ("ENLACESDS",),
}


@dataclass(frozen=True)
class RawInitiative:
    """Every field optional: ``None`` means the export did not carry it."""

    expediente: str | None = None
    kind: str | None = None
    subject: str | None = None
    promoter: str | None = None
    submission_date: str | None = None
    qualification_date: str | None = None
    related: str | None = None
    origin: str | None = None
    procedure_text: str | None = None
    legislature: str | None = None
    supertype: str | None = None
    grouping: str | None = None
    processing_type: str | None = None
    outcome: str | None = None
    current_situation: str | None = None
    committee: str | None = None
    deadlines: str | None = None
    rapporteurs: str | None = None
    bocg_links: str | None = None
    ds_links: str | None = None
    key_field: str | None = None  # which tag supplied the expediente

    @classmethod
    def from_fields(cls, bag: Mapping[str, str | None]) -> RawInitiative:
        """Build from a tag-name → text mapping; tag names are case-insensitive."""
        upper = {str(k).upper(): v for k, v in bag.items()}
        values: dict[str, str | None] = {}
        for attr, tags in FIELD_ALIASES.items():
            for tag in tags:
                text = upper.get(tag)
                if text is not None and text.strip():
                    values[attr] = text
                    if attr == "expediente":
                        values["key_field"] = tag
                    break
        return cls(**values)

    def as_dict(self) -> dict[str, str | None]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
