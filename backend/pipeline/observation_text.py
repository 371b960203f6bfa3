"""
Stage 1: Observation text extraction.
Flattens loosely structured observations into searchable text.
"""

import logging
from collections.abc import Mapping
from typing import Any, List, Optional

from pydantic import ValidationError

from models.schemas import CodeableConcept, Observation, ObservationComponent

logger = logging.getLogger(__name__)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_text(value: Any) -> str:
    """Coerce to string, trim, uppercase. Never raises; None becomes ""."""
    return _as_text(value).upper()


def _concept_text(concept: Optional[CodeableConcept]) -> Any:
    return concept.text if concept is not None else None


def _first_display(concept: Optional[CodeableConcept]) -> Any:
    if concept is None or not concept.coding:
        return None
    return concept.coding[0].display


def _component_fields(component: ObservationComponent) -> List[Any]:
    return [
        _concept_text(component.code),
        component.value_string,
        _concept_text(component.value_codeable_concept),
    ]


def coerce_observation(obj: Any) -> Observation:
    """
    Turn any observation-like object into an Observation.

    Anything that is not a mapping becomes an empty observation.
    """
    if isinstance(obj, Observation):
        return obj
    if not isinstance(obj, Mapping):
        return Observation()
    try:
        return Observation.model_validate(dict(obj))
    except ValidationError as e:
        logger.warning(f"Dropping unreadable observation fields: {e.error_count()} validation error(s)")
        return Observation()


def iter_observations(source: Any) -> List[Observation]:
    """
    Normalize the accepted input shapes into a list of observations.

    Accepts None, a list/tuple of observation-like objects, a single
    observation mapping, or a FHIR Bundle (only ``Observation`` resources
    are kept).
    """
    if source is None:
        return []
    if isinstance(source, Observation):
        return [source]
    if isinstance(source, Mapping):
        if source.get("resourceType") == "Bundle":
            return observations_from_bundle(source)
        return [coerce_observation(source)]
    if isinstance(source, (list, tuple)):
        return [coerce_observation(obj) for obj in source]
    logger.warning(f"Ignoring observations of unsupported type {type(source).__name__}")
    return []


def observations_from_bundle(bundle: Mapping) -> List[Observation]:
    entries = bundle.get("entry")
    if not isinstance(entries, (list, tuple)):
        return []

    observations = []
    skipped = 0
    for entry in entries:
        resource = entry.get("resource") if isinstance(entry, Mapping) else None
        if not isinstance(resource, Mapping) or resource.get("resourceType") != "Observation":
            skipped += 1
            continue
        observations.append(coerce_observation(resource))

    if skipped:
        logger.debug(f"Skipped {skipped} non-Observation bundle entries")
    return observations


def observation_text(observation: Any, normalize: bool = True) -> str:
    """
    Concatenate the text-bearing fields of one observation.

    Field order: code.text, code.coding[0].display, valueString,
    valueCodeableConcept.text, value, interpretation.text, then
    code.text / valueString / valueCodeableConcept.text of every component.
    """
    obs = coerce_observation(observation)
    fields = [
        _concept_text(obs.code),
        _first_display(obs.code),
        obs.value_string,
        _concept_text(obs.value_codeable_concept),
        obs.value,
        _concept_text(obs.interpretation),
    ]
    for component in obs.component:
        fields.extend(_component_fields(component))

    text = " ".join(t for t in (_as_text(f) for f in fields) if t)
    return text.upper() if normalize else text


def joined_observation_text(observations: Any, normalize: bool = True) -> str:
    """Join the text of all observations into one search string."""
    texts = (observation_text(obs, normalize=normalize) for obs in iter_observations(observations))
    return " ".join(t for t in texts if t)
