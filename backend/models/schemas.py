"""
Pydantic models for the OncoSafeRx PGx phenotype mapper.

Input observations are deliberately lenient: every field is optional and a
malformed nested shape is dropped instead of rejected, so that mapping never
fails on loosely structured clinical records. Output models are strict.
"""

from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Any, Dict, List, Literal, Optional


# =============================================================================
# Observation input models (FHIR-Observation-like)
# =============================================================================

class LenientModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Coding(LenientModel):
    display: Any = None


class CodeableConcept(LenientModel):
    text: Any = None
    coding: List[Coding] = Field(default_factory=list)

    @field_validator("coding", mode="before")
    @classmethod
    def keep_mapping_codings(cls, v):
        if not isinstance(v, (list, tuple)):
            return []
        return [c for c in v if isinstance(c, (dict, Coding))]


def _mapping_or_none(v: Any) -> Any:
    if isinstance(v, (dict, CodeableConcept)):
        return v
    return None


class ObservationComponent(LenientModel):
    """Sub-record of an observation (``component[]``)."""
    code: Optional[CodeableConcept] = None
    value_string: Any = Field(default=None, alias="valueString")
    value_codeable_concept: Optional[CodeableConcept] = Field(default=None, alias="valueCodeableConcept")

    @field_validator("code", "value_codeable_concept", mode="before")
    @classmethod
    def concept_or_none(cls, v):
        return _mapping_or_none(v)


class Observation(ObservationComponent):
    """Loosely structured clinical observation. No field is required."""
    value: Any = None
    interpretation: Optional[CodeableConcept] = None
    component: List[ObservationComponent] = Field(default_factory=list)

    @field_validator("interpretation", mode="before")
    @classmethod
    def first_interpretation(cls, v):
        # FHIR R4 carries interpretation as a list of CodeableConcepts.
        if isinstance(v, (list, tuple)):
            v = v[0] if v else None
        return _mapping_or_none(v)

    @field_validator("component", mode="before")
    @classmethod
    def keep_mapping_components(cls, v):
        if not isinstance(v, (list, tuple)):
            return []
        return [c for c in v if isinstance(c, (dict, ObservationComponent))]


# =============================================================================
# Mapper output models
# =============================================================================

class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class PhenotypeResult(StrictModel):
    """Metabolizer phenotype for one gene."""
    gene: str
    phenotype: str


class HLAResult(StrictModel):
    """Presence of one HLA risk allele."""
    gene: str
    allele: str
    phenotype: Literal["Positive"] = "Positive"
    note: str


class PGxProfile(StrictModel):
    """Combined metabolizer and HLA findings for one set of observations."""
    rules_version: str
    timestamp: str
    phenotypes: List[PhenotypeResult]
    hla_findings: List[HLAResult]
    undetermined_genes: List[str] = Field(default_factory=list)


# =============================================================================
# API Request/Response Models
# =============================================================================

class ObservationsRequest(BaseModel):
    """Request body: a list of observations, a FHIR Bundle, or both."""
    observations: List[Any] = Field(default_factory=list)
    bundle: Optional[Dict[str, Any]] = Field(default=None, description="FHIR Bundle of Observation resources")


class HealthResponse(StrictModel):
    """Health check response."""
    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    timestamp: str


class HLAAlleleInfo(StrictModel):
    gene: str
    allele: str
    note: str


class SupportedGenesResponse(StrictModel):
    """Genes and HLA alleles the rule tables can classify."""
    rules_version: str
    metabolizer_genes: List[str]
    hla_alleles: List[HLAAlleleInfo]
    count: int
