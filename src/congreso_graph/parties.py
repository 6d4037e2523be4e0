"""Attribute an initiative to the promoting party or institution.

Three passes, strongest first:

1. **parliamentary_group** (high): the author names a known parliamentary
   group or party alias.
2. **initiative_type** (high/medium): government bills and Senate
   propositions identify their promoter by type alone.
3. **content_analysis** (medium): party keywords in subject or author.

Anything else falls back to ``desconocido`` (low).
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass

from .models import Initiative, PartyAttribution
from .normalize import normalize_text


@dataclass(frozen=True)
class Party:
    party_id: str
    name: str
    short_name: str
    groups: tuple[str, ...]  # parliamentary-group names and aliases
    color: str


PARTIES: tuple[Party, ...] = (
    Party(
        "partido_popular",
        "Partido Popular",
        "PP",
        ("Grupo Parlamentario Popular en el Congreso", "Grupo Parlamentario Popular", "Popular"),
        "#0056A3",
    ),
    Party(
        "partido_socialista",
        "Partido Socialista Obrero Español",
        "PSOE",
        ("Grupo Parlamentario Socialista", "Socialista", "PSOE"),
        "#E30613",
    ),
    Party("vox", "VOX", "VOX", ("Grupo Parlamentario VOX", "VOX"), "#5BC236"),
    Party(
        "sumar",
        "SUMAR",
        "SUMAR",
        ("Grupo Parlamentario Plurinacional SUMAR", "SUMAR"),
        "#FF6B35",
    ),
    Party(
        "unidas_podemos",
        "Unidas Podemos",
        "UP",
        (
            "Grupo Parlamentario Confederal de Unidas Podemos-En Comú Podem-Galicia en Común",
            "Unidas Podemos",
            "Podemos",
        ),
        "#6B3FA0",
    ),
    Party(
        "partido_nacionalista_vasco",
        "Partido Nacionalista Vasco",
        "EAJ-PNV",
        ("Grupo Parlamentario Vasco (EAJ-PNV)", "EAJ-PNV", "Partido Nacionalista Vasco"),
        "#008C15",
    ),
    Party(
        "eh_bildu",
        "EH Bildu",
        "EH Bildu",
        ("Grupo Parlamentario Euskal Herria Bildu", "Euskal Herria Bildu", "EH Bildu"),
        "#00A9E0",
    ),
    Party(
        "junts",
        "Junts per Catalunya",
        "Junts",
        ("Grupo Parlamentario Junts per Catalunya", "Junts per Catalunya", "Junts"),
        "#FFD700",
    ),
    Party(
        "esquerra_republicana",
        "Esquerra Republicana de Catalunya",
        "ERC",
        ("Grupo Parlamentario Republicano", "Esquerra Republicana", "ERC"),
        "#FFB81C",
    ),
    # The Mixed Group is shared; its bare name is not enough to pick a member party.
    Party(
        "bloque_nacionalista_galego",
        "Bloque Nacionalista Galego",
        "BNG",
        ("BNG", "Bloque Nacionalista Galego"),
        "#0066CC",
    ),
    Party(
        "union_pueblo_navarro",
        "Unión del Pueblo Navarro",
        "UPN",
        ("UPN", "Unión del Pueblo Navarro"),
        "#FF6600",
    ),
    Party("coalicion_canaria", "Coalición Canaria", "CC", ("Coalición Canaria",), "#FFCC00"),
    Party("gobierno", "Gobierno de España", "Gobierno", ("Gobierno", "Gobierno de España"), "#333333"),
    Party(
        "comisiones",
        "Comisiones Parlamentarias",
        "Comisiones",
        ("Comisión", "Comisiones"),
        "#666666",
    ),
    Party(
        "comunidades_autonomas",
        "Comunidades Autónomas",
        "CCAA",
        ("Comunidad Autónoma", "Parlamento", "Asamblea"),
        "#999999",
    ),
)

_BY_ID = {p.party_id: p for p in PARTIES}

# Weaker hints for the content pass; matched as whole words.
_CONTENT_KEYWORDS: dict[str, tuple[str, ...]] = {
    "partido_popular": ("partido popular",),
    "partido_socialista": ("socialista", "psoe"),
    "vox": ("vox",),
    "sumar": ("sumar", "plurinacional"),
    "unidas_podemos": ("podemos", "confederal"),
    "partido_nacionalista_vasco": ("eaj-pnv", "nacionalista vasco"),
    "eh_bildu": ("euskal herria", "bildu"),
    "junts": ("junts",),
    "esquerra_republicana": ("esquerra", "erc"),
    "bloque_nacionalista_galego": ("galego", "bng"),
    "union_pueblo_navarro": ("upn", "pueblo navarro"),
    "coalicion_canaria": ("coalicion canaria",),
}

UNKNOWN_PARTY = PartyAttribution(
    party_id="desconocido",
    name="Partido Desconocido",
    short_name="Desconocido",
    confidence="low",
    method="fallback",
)


def _contains_word(haystack: str, needle: str) -> bool:
    return re.search(rf"(?<![\w-]){re.escape(needle)}(?![\w-])", haystack) is not None


def _attribution(party: Party, confidence: str, method: str) -> PartyAttribution:
    return PartyAttribution(
        party_id=party.party_id,
        name=party.name,
        short_name=party.short_name,
        confidence=confidence,
        method=method,
        color=party.color,
    )


def by_parliamentary_group(promoter: str) -> PartyAttribution | None:
    author = normalize_text(promoter)
    if not author:
        return None
    for party in PARTIES:
        for group in party.groups:
            if _contains_word(author, normalize_text(group)):
                return _attribution(party, "high", "parliamentary_group")
    return None


def by_initiative_type(kind: str, promoter: str) -> PartyAttribution | None:
    kind_n = normalize_text(kind)
    author = normalize_text(promoter)
    if "proyecto de ley" in kind_n and "gobierno" in author:
        return _attribution(_BY_ID["gobierno"], "high", "initiative_type")
    if "proposicion de ley del senado" in kind_n:
        return PartyAttribution(
            party_id="senado",
            name="Senado",
            short_name="Senado",
            confidence="medium",
            method="initiative_type",
            color="#666666",
        )
    return None


def by_content(subject: str, promoter: str) -> PartyAttribution | None:
    text = f"{normalize_text(subject)} {normalize_text(promoter)}"
    if not text.strip():
        return None
    for party_id, keywords in _CONTENT_KEYWORDS.items():
        if any(_contains_word(text, kw) for kw in keywords):
            return _attribution(_BY_ID[party_id], "medium", "content_analysis")
    return None


def identify_party(initiative: Initiative) -> PartyAttribution:
    """Best attribution for *initiative*; never ``None``."""
    return (
        by_parliamentary_group(initiative.promoter)
        or by_initiative_type(initiative.kind, initiative.promoter)
        or by_content(initiative.subject, initiative.promoter)
        or UNKNOWN_PARTY
    )


def party_distribution(attributions: Iterable[PartyAttribution]) -> list[tuple[str, int]]:
    """``(short_name, count)`` pairs, most frequent first."""
    counts = Counter(a.short_name for a in attributions)
    return sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
