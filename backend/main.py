"""
OncoSafeRx PGx - FastAPI Backend
Pharmacogenomic phenotype mapping from clinical observation text

Main application entry point with all API routes.
"""

import os
import logging
from pathlib import Path
from datetime import datetime, UTC
from typing import Any, List
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load environment variables from backend/.env regardless of launch directory
_ENV_PATH = Path(__file__).resolve().parent / ".env"
load_dotenv(dotenv_path=_ENV_PATH)

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Import pipeline modules
from pipeline.observation_text import iter_observations
from pipeline.phenotype_mapper import map_observations_to_phenotypes
from pipeline.hla_detector import map_hla_from_observations
from pipeline.pgx_profile import build_pgx_profile
from pipeline.rules_loader import get_rules

# Import schemas
from models.schemas import (
    HealthResponse,
    HLAAlleleInfo,
    HLAResult,
    ObservationsRequest,
    PGxProfile,
    PhenotypeResult,
    SupportedGenesResponse,
)

API_VERSION = "1.0.0"
MAX_OBSERVATIONS = 1000

_RULES = get_rules()


# Application lifespan management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info(f"OncoSafeRx PGx starting up (rules {_RULES.rules_version})...")
    yield
    logger.info("OncoSafeRx PGx shutting down...")


# Create FastAPI application
app = FastAPI(
    title="OncoSafeRx PGx",
    description="Rule-based pharmacogenomic phenotype and HLA risk allele mapping from clinical observations",
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify allowed origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _collect_observations(request: ObservationsRequest) -> List[Any]:
    observations = list(request.observations)
    if request.bundle is not None:
        observations.extend(iter_observations(request.bundle))
    if len(observations) > MAX_OBSERVATIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Too many observations ({len(observations)}); limit is {MAX_OBSERVATIONS}",
        )
    return observations


# =============================================================================
# Health Check Endpoint
# =============================================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """
    Health check endpoint for deployment monitoring.
    """
    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        timestamp=datetime.now(UTC).isoformat().replace("+00:00", "Z")
    )


# =============================================================================
# Reference Endpoints
# =============================================================================

@app.get("/supported-genes", response_model=SupportedGenesResponse, tags=["Reference"])
async def supported_genes():
    """
    List the metabolizer genes and HLA risk alleles the rule tables cover.
    """
    rules = get_rules()
    alleles = [HLAAlleleInfo(gene=r.gene, allele=r.allele, note=r.note) for r in rules.hla_rules]
    return SupportedGenesResponse(
        rules_version=rules.rules_version,
        metabolizer_genes=list(rules.supported_genes),
        hla_alleles=alleles,
        count=len(rules.supported_genes) + len(alleles),
    )


# =============================================================================
# Mapping Endpoints
# =============================================================================

@app.post("/phenotypes", response_model=List[PhenotypeResult], tags=["Mapping"])
async def map_phenotypes(request: ObservationsRequest):
    """
    Map observations to metabolizer phenotypes.

    - **observations**: FHIR-like Observation objects
    - **bundle**: Optional FHIR Bundle; its Observation resources are added

    Genes without a recognizable pattern are omitted.
    """
    observations = _collect_observations(request)
    return map_observations_to_phenotypes(observations)


@app.post("/hla", response_model=List[HLAResult], tags=["Mapping"])
async def map_hla(request: ObservationsRequest):
    """
    Detect HLA risk alleles mentioned anywhere in the observations.
    """
    observations = _collect_observations(request)
    return map_hla_from_observations(observations)


@app.post("/pgx-profile", response_model=PGxProfile, tags=["Mapping"])
async def pgx_profile(request: ObservationsRequest):
    """
    Combined metabolizer phenotypes, HLA findings and undetermined genes.
    """
    observations = _collect_observations(request)
    profile = build_pgx_profile(observations)
    logger.info(
        "PGx profile: %d observation(s), %d phenotype(s), %d HLA finding(s)",
        len(observations),
        len(profile.phenotypes),
        len(profile.hla_findings),
    )
    return profile


# =============================================================================
# Run Application
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV", "development") == "development"
    )
