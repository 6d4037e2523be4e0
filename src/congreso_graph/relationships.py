"""Declared cross-reference edges (``related`` / ``origin``) within a working set."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from .models import EdgeKind, Initiative, RelationshipEdge

LOGGER = logging.getLogger(__name__)


def declared_edges(
    initiative: Initiative, known: Mapping[str, Initiative]
) -> list[RelationshipEdge]:
    """Edges declared by one initiative, in reference-list order.

    ``related`` references come first, then ``origin``.  References to
    expedientes outside *known* are dropped (the target may simply not be in
    this batch), as are self references and repeats of the same edge.
    """
    source = initiative.expediente
    edges: list[RelationshipEdge] = []
    seen: set[tuple[str, EdgeKind]] = set()
    for kind, keys in (
        (EdgeKind.RELATED, initiative.related_keys),
        (EdgeKind.ORIGIN, initiative.origin_keys),
    ):
        for target in keys:
            if target == source:
                LOGGER.debug("%s lists itself as %s; dropped", source, kind.value)
                continue
            if target not in known:
                LOGGER.debug("%s → %s (%s): target not in working set", source, target, kind.value)
                continue
            if (target, kind) in seen:
                continue
            seen.add((target, kind))
            edges.append(RelationshipEdge(source, target, kind))
    return edges


def resolve_relationships(initiatives: Mapping[str, Initiative]) -> list[RelationshipEdge]:
    """All declared edges of the working set, grouped by source in set order."""
    edges: list[RelationshipEdge] = []
    for initiative in initiatives.values():
        edges.extend(declared_edges(initiative, initiatives))
    LOGGER.info("Resolved %d declared edges across %d initiatives", len(edges), len(initiatives))
    return edges
