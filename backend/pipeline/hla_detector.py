"""
Stage 3: HLA risk allele detection (presence-based).

Unlike metabolizer mapping this is find-all: a patient can carry several
independent risk alleles, so every matching allele is reported.
"""

from __future__ import annotations

import logging
from typing import Any, List

from models.schemas import HLAResult
from pipeline.observation_text import joined_observation_text
from pipeline.rules_loader import get_rules

logger = logging.getLogger(__name__)


def detect_hla_alleles(text: str) -> List[HLAResult]:
    if not text:
        return []
    found = [
        HLAResult(gene=rule.gene, allele=rule.allele, phenotype="Positive", note=rule.note)
        for rule in get_rules().hla_rules
        if rule.pattern.search(text)
    ]
    if found:
        logger.info(f"HLA risk alleles present: {[r.allele for r in found]}")
    return found


def map_hla_from_observations(observations: Any = None) -> List[HLAResult]:
    """Scan the raw (not uppercased) joined observation text for HLA risk alleles."""
    return detect_hla_alleles(joined_observation_text(observations, normalize=False))
