"""
fusion — Multi-source hazard aggregation engine.

Sub-modules:
    models       — HazardPoint and the enums/value objects around it
    risk_scorer  — deterministic 0–100 risk score
    impact       — nearest population centre + exposure bucket
    merger       — spatial deduplication with provenance priority
    fallback     — backfill reference incidents and demo filler points
    aggregator   — orchestration: cache → fetch → enrich → merge
"""
