"""
Stage 2: Metabolizer phenotype mapping.

Each supported gene has an ordered list of text rules loaded from the PGx
rules file. Rules are tried in order and the first match wins, so the most
severe phenotype is listed first for every gene.
"""

import logging
from typing import Any, List, Optional

from models.schemas import PhenotypeResult
from pipeline.observation_text import joined_observation_text
from pipeline.rules_loader import get_rules

logger = logging.getLogger(__name__)


def match_gene_phenotype(gene: str, text: str) -> Optional[str]:
    """
    Return the first phenotype label whose rule matches ``text``, else None.

    Args:
        gene: Gene symbol (e.g., 'CYP2D6')
        text: Normalized, joined observation text
    """
    rules = get_rules().metabolizer_rules.get(gene)
    if rules is None:
        logger.warning(f"Gene {gene} has no phenotype rules")
        return None
    if not text:
        return None

    for rule in rules:
        if rule.pattern.search(text):
            logger.debug("%s matched rule for %s", gene, rule.phenotype)
            return rule.phenotype
    return None


def match_cyp2d6(text: str) -> Optional[str]:
    return match_gene_phenotype("CYP2D6", text)


def match_cyp2c19(text: str) -> Optional[str]:
    return match_gene_phenotype("CYP2C19", text)


def match_ugt1a1(text: str) -> Optional[str]:
    return match_gene_phenotype("UGT1A1", text)


def match_tpmt(text: str) -> Optional[str]:
    return match_gene_phenotype("TPMT", text)


def match_dpyd(text: str) -> Optional[str]:
    return match_gene_phenotype("DPYD", text)


def match_slco1b1(text: str) -> Optional[str]:
    return match_gene_phenotype("SLCO1B1", text)


def match_vkorc1(text: str) -> Optional[str]:
    return match_gene_phenotype("VKORC1", text)


def match_nudt15(text: str) -> Optional[str]:
    return match_gene_phenotype("NUDT15", text)


def map_text_to_phenotypes(text: str) -> List[PhenotypeResult]:
    """Run every gene matcher once, in table order, over already-joined text."""
    results: List[PhenotypeResult] = []
    for gene in get_rules().supported_genes:
        phenotype = match_gene_phenotype(gene, text)
        if phenotype is not None:
            results.append(PhenotypeResult(gene=gene, phenotype=phenotype))
    return results


def map_observations_to_phenotypes(observations: Any = None) -> List[PhenotypeResult]:
    """
    Map observations to metabolizer phenotypes.

    Text from all observations is joined before matching, so evidence from
    separate observations can combine. Genes without a match are omitted.

    Args:
        observations: List of observation-like objects, or a FHIR Bundle

    Returns:
        List of PhenotypeResult, at most one per gene (possibly empty)
    """
    text = joined_observation_text(observations, normalize=True)
    results = map_text_to_phenotypes(text)
    logger.info(f"Mapped phenotypes: {[(r.gene, r.phenotype) for r in results]}")
    return results


def phenotype_to_abbreviation(phenotype: str) -> str:
    """
    Convert a phenotype label to its abbreviation.

    Args:
        phenotype: Label like 'Poor metabolizer'

    Returns:
        Abbreviation like 'PM', or 'Unknown'
    """
    return get_rules().phenotype_abbreviations.get(phenotype, "Unknown")
