"""
PGx text-rule loader.
Loads versioned, externalized phenotype and HLA rule tables from JSON and
compiles them into ordered regex rules.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

_FLAGS = re.IGNORECASE | re.DOTALL


@dataclass(frozen=True)
class MatchRule:
    """One (pattern, phenotype label) pair. Order within a gene is priority."""
    pattern: re.Pattern
    phenotype: str


@dataclass(frozen=True)
class HLARule:
    gene: str
    allele: str
    pattern: re.Pattern
    note: str


@dataclass
class LoadedRules:
    rules_version: str
    supported_genes: List[str]
    metabolizer_rules: Dict[str, List[MatchRule]]
    hla_rules: List[HLARule]
    phenotype_abbreviations: Dict[str, str]


_RULES: Optional[LoadedRules] = None


def _rules_path() -> Path:
    configured = os.getenv("PGX_RULES_PATH", "").strip()
    if configured:
        return Path(configured)
    return Path(__file__).resolve().parent.parent / "data" / "pgx_rules" / "rules.v1.json"


def diplotype_pattern(diplotype: str) -> str:
    """
    Regex for a literal diplotype such as "*1/*4".

    Tolerates whitespace around the slash and refuses to match a longer
    allele ("*1/*4" does not match inside "*1/*41").
    """
    parts = diplotype.split("/")
    if len(parts) != 2 or not all(p.strip().lstrip("*") for p in parts):
        raise ValueError(f"Malformed diplotype in rules: {diplotype!r}")
    allele1, allele2 = (re.escape(p.strip().lstrip("*")) for p in parts)
    return rf"\*{allele1}\s*/\s*\*{allele2}(?![0-9A-Z])"


def _compile(pattern: str, where: str) -> re.Pattern:
    try:
        return re.compile(pattern, _FLAGS)
    except re.error as e:
        raise ValueError(f"Invalid regex in {where}: {pattern!r} ({e})") from e


def gene_anchor(gene: str, genes: List[str]) -> str:
    """
    Regex prefix tying phenotype evidence to a mention of ``gene``.

    The evidence may sit anywhere after the gene symbol, but not past the
    mention of another supported gene, so a panel such as
    "TPMT *1/*1 NUDT15 *2/*2" keeps each diplotype with its own gene.
    """
    others = [re.escape(g) for g in genes if g != gene]
    if not others:
        return rf"\b{re.escape(gene)}\b.*?"
    stop = "|".join(others)
    return rf"\b{re.escape(gene)}\b(?:(?!\b(?:{stop})\b).)*?"


def _compile_gene_rules(gene: str, raw: List[Dict[str, Any]], genes: List[str]) -> List[MatchRule]:
    if not raw:
        raise ValueError(f"No metabolizer rules defined for {gene}")

    anchor = gene_anchor(gene, genes)
    rules: List[MatchRule] = []
    for idx, entry in enumerate(raw):
        where = f"metabolizer_rules.{gene}[{idx}]"
        if "phenotype" not in entry:
            raise ValueError(f"Missing phenotype in {where}")
        alternatives = [diplotype_pattern(d) for d in entry.get("diplotypes", [])]
        alternatives.extend(entry.get("markers", []))
        if not alternatives:
            raise ValueError(f"No diplotypes or markers in {where}")
        pattern = anchor + "(?:" + "|".join(f"(?:{alt})" for alt in alternatives) + ")"
        rules.append(MatchRule(pattern=_compile(pattern, where), phenotype=str(entry["phenotype"])))
    return rules


def _compile_hla_rules(raw: List[Dict[str, Any]]) -> List[HLARule]:
    out: List[HLARule] = []
    for idx, row in enumerate(raw):
        where = f"hla_rules[{idx}]"
        missing = [k for k in ("gene", "allele", "pattern", "note") if k not in row]
        if missing:
            raise ValueError(f"{where} missing keys: {missing}")
        out.append(
            HLARule(
                gene=str(row["gene"]),
                allele=str(row["allele"]),
                pattern=_compile(row["pattern"], where),
                note=str(row["note"]),
            )
        )
    return out


def _validate_required(data: Dict[str, Any]) -> None:
    required = [
        "rules_version",
        "supported_genes",
        "metabolizer_rules",
        "hla_rules",
        "phenotype_abbreviations",
    ]
    missing = [k for k in required if k not in data]
    if missing:
        raise ValueError(f"PGx rules file missing keys: {missing}")

    unknown = [g for g in data["supported_genes"] if g not in data["metabolizer_rules"]]
    if unknown:
        raise ValueError(f"Supported genes without metabolizer rules: {unknown}")


def parse_rules(data: Dict[str, Any]) -> LoadedRules:
    _validate_required(data)
    genes = list(data["supported_genes"])
    return LoadedRules(
        rules_version=str(data["rules_version"]),
        supported_genes=genes,
        metabolizer_rules={
            gene: _compile_gene_rules(gene, list(data["metabolizer_rules"][gene]), genes)
            for gene in genes
        },
        hla_rules=_compile_hla_rules(list(data["hla_rules"])),
        phenotype_abbreviations=dict(data["phenotype_abbreviations"]),
    )


def load_rules(force_reload: bool = False) -> LoadedRules:
    global _RULES
    if _RULES is not None and not force_reload:
        return _RULES

    path = _rules_path()
    if not path.exists():
        raise FileNotFoundError(f"PGx rules file not found: {path}")

    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)

    _RULES = parse_rules(data)
    logger.info(
        f"Loaded PGx rules version {_RULES.rules_version} from {path} "
        f"({len(_RULES.supported_genes)} genes, {len(_RULES.hla_rules)} HLA alleles)"
    )
    return _RULES


def get_rules() -> LoadedRules:
    return load_rules()
