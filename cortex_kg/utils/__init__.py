"""
Utility Functions

Modules:
    fingerprint: Deterministic text vectors and cosine similarity
    telemetry: Request-scoped call records
    text: Label cleanup and content gates
"""

from cortex_kg.utils.fingerprint import cosine_similarity, fingerprint
from cortex_kg.utils.telemetry import (
    UsageCollector,
    telemetry_collector,
    telemetry_stage,
)
from cortex_kg.utils.text import clean_label, is_processable, strip_generated_prefix

__all__ = [
    "fingerprint",
    "cosine_similarity",
    "UsageCollector",
    "telemetry_collector",
    "telemetry_stage",
    "clean_label",
    "is_processable",
    "strip_generated_prefix",
]
