"""
Randomized health-status classifier.

This is a placeholder, not a diagnostic model: one uniform draw picks the
status band, a second draw picks the confidence inside the band. The narrative
text per (mode, status) is fixed data.
"""
from __future__ import annotations
import math
from types import MappingProxyType
from typing import Mapping, NamedTuple, Protocol, Tuple

from core.models import Classification, HealthStatus, Mode


class RandomSource(Protocol):
    """Anything with a uniform `random()` in [0, 1): random.Random, numpy Generator."""
    def random(self) -> float: ...


class Band(NamedTuple):
    lower: float          # status applies when r > lower
    status: HealthStatus
    base: float
    spread: float


# Checked in order; the last band catches everything at or below 0.35.
BANDS: Tuple[Band, ...] = (
    Band(0.70, "healthy", 75.0, 20.0),
    Band(0.35, "needs-consultation", 60.0, 15.0),
    Band(-math.inf, "high-risk", 55.0, 10.0),
)


class Narrative(NamedTuple):
    details: Tuple[str, ...]
    recommendations: Tuple[str, ...]


CATALOG: Mapping[Tuple[Mode, HealthStatus], Narrative] = MappingProxyType({
    ("face", "healthy"): Narrative(
        details=(
            "Normal facial symmetry detected",
            "Skin tone analysis: Within normal range",
            "Eye analysis: No visible abnormalities",
            "Facial temperature estimation: Normal",
        ),
        recommendations=(
            "Continue maintaining good health habits",
            "Regular health checkups recommended",
            "Stay hydrated and get adequate sleep",
        ),
    ),
    ("face", "needs-consultation"): Narrative(
        details=(
            "Minor facial asymmetry detected",
            "Skin tone variation observed",
            "Eye fatigue indicators present",
            "Possible signs of stress or fatigue",
        ),
        recommendations=(
            "Schedule a consultation with a healthcare provider",
            "Monitor for any changes in symptoms",
            "Ensure adequate rest and stress management",
            "Consider a comprehensive health screening",
        ),
    ),
    ("face", "high-risk"): Narrative(
        details=(
            "Significant facial irregularities detected",
            "Abnormal skin tone patterns observed",
            "Multiple risk indicators present",
            "Immediate medical attention may be needed",
        ),
        recommendations=(
            "Consult a healthcare professional immediately",
            "Schedule comprehensive medical examination",
            "Document any recent symptoms or changes",
            "Do not delay seeking medical advice",
        ),
    ),
    ("voice", "healthy"): Narrative(
        details=(
            "Voice pitch within normal range",
            "Clear pronunciation detected",
            "No irregular breathing patterns",
            "Normal speech tempo",
            "No signs of voice strain or hoarseness",
        ),
        recommendations=(
            "Voice characteristics appear normal",
            "Continue maintaining good vocal health",
            "Stay hydrated and avoid excessive strain",
            "Regular health checkups recommended",
        ),
    ),
    ("voice", "needs-consultation"): Narrative(
        details=(
            "Minor voice irregularities detected",
            "Slight hoarseness or strain observed",
            "Irregular breathing pattern noticed",
            "Voice pitch variation detected",
            "Possible signs of fatigue or stress",
        ),
        recommendations=(
            "Schedule a consultation with a healthcare provider",
            "Consider ENT specialist evaluation",
            "Monitor for persistent voice changes",
            "Rest your voice and stay hydrated",
            "Avoid shouting or excessive talking",
        ),
    ),
    ("voice", "high-risk"): Narrative(
        details=(
            "Significant voice abnormalities detected",
            "Severe hoarseness or strain present",
            "Irregular breathing patterns observed",
            "Multiple risk indicators identified",
            "Possible respiratory concerns",
        ),
        recommendations=(
            "Consult a healthcare professional immediately",
            "Schedule ENT and respiratory evaluation",
            "Document any additional symptoms",
            "Avoid straining your voice",
            "Seek medical attention without delay",
        ),
    ),
})


def round_half_up(x: float) -> int:
    """Round .5 away from zero for positives (Python's round() is banker's)."""
    return int(math.floor(x + 0.5))


def band_for(r: float) -> Band:
    """Strict '>' on each lower bound: 0.70 -> needs-consultation, 0.35 -> high-risk."""
    for band in BANDS:
        if r > band.lower:
            return band
    return BANDS[-1]


def status_for(r: float) -> HealthStatus:
    return band_for(r).status


def classify(mode: Mode, rng: RandomSource) -> Classification:
    """
    Classify one capture.

    Draws `r` from `rng` for the status, then one more value for the confidence
    jitter inside the band.
    """
    r = float(rng.random())
    band = band_for(r)
    confidence = round_half_up(band.base + float(rng.random()) * band.spread)
    narrative = CATALOG[(mode, band.status)]
    return Classification(
        status=band.status,
        confidence=confidence,
        details=list(narrative.details),
        recommendations=list(narrative.recommendations),
    )
