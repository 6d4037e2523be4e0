"""Ingestion pipeline for Congreso de los Diputados legislative-initiative exports.

Parses the open-data XML exports into canonical initiatives, links them
(declared cross-references plus subject similarity), rebuilds each
initiative's procedural timeline, classifies its legislative stage and
upserts the lot into a relational store.

Run it with: ``congreso-ingest`` (or ``python scripts/ingest.py``)
"""
