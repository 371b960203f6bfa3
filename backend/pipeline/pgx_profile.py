"""
PGx profile assembly.
Runs metabolizer mapping and HLA detection over the same observations and
reports which supported genes could not be classified.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, List

from models.schemas import PGxProfile
from pipeline.hla_detector import map_hla_from_observations
from pipeline.observation_text import iter_observations
from pipeline.phenotype_mapper import map_observations_to_phenotypes
from pipeline.rules_loader import get_rules

logger = logging.getLogger(__name__)


def build_pgx_profile(observations: Any = None) -> PGxProfile:
    rules = get_rules()
    obs = iter_observations(observations)

    phenotypes = map_observations_to_phenotypes(obs)
    hla_findings = map_hla_from_observations(obs)
    matched = {p.gene for p in phenotypes}

    return PGxProfile(
        rules_version=rules.rules_version,
        timestamp=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        phenotypes=phenotypes,
        hla_findings=hla_findings,
        undetermined_genes=[g for g in rules.supported_genes if g not in matched],
    )


def load_observations_file(path: Path) -> List[Any]:
    """
    Read observations from a JSON file.

    The file may hold a list of observations, a single observation, or a
    FHIR Bundle. Raises ValueError when the file is not valid JSON.
    """
    with path.open("r", encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e
    observations = iter_observations(data)
    logger.info(f"Loaded {len(observations)} observation(s) from {path}")
    return observations
