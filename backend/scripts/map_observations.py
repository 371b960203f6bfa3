"""
Map a file of clinical observations to PGx phenotypes and HLA findings.

Input format (JSON): a list of FHIR-like Observation objects, a single
Observation, or a FHIR Bundle.

Usage:
  uv run python scripts/map_observations.py --input data/examples/observations.json --mode profile
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from pipeline.hla_detector import map_hla_from_observations
from pipeline.pgx_profile import build_pgx_profile, load_observations_file
from pipeline.phenotype_mapper import map_observations_to_phenotypes


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--input", required=True, help="Path to JSON observations file")
    parser.add_argument("--mode", choices=["phenotypes", "hla", "profile"], default="profile")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    path = Path(args.input)
    if not path.exists():
        raise SystemExit(f"Observations file not found: {path}")
    try:
        observations = load_observations_file(path)
    except ValueError as e:
        raise SystemExit(str(e))

    if args.mode == "phenotypes":
        out = [r.model_dump() for r in map_observations_to_phenotypes(observations)]
    elif args.mode == "hla":
        out = [r.model_dump() for r in map_hla_from_observations(observations)]
    else:
        out = build_pgx_profile(observations).model_dump()

    print(json.dumps(out, indent=2))


if __name__ == "__main__":
    main()
