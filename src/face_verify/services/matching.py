"""Embedding comparison."""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from face_verify.domain.errors import DimensionMismatch, InvalidPayload

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.6


@dataclass(frozen=True)
class MatchResult:
    """Distance between two embeddings and the match decision."""

    distance: float
    matched: bool


def euclidean_distance(first: Sequence[float], second: Sequence[float]) -> float:
    """Return the Euclidean distance between two equal-length vectors."""
    if len(first) != len(second):
        raise DimensionMismatch(
            f"Embedding length {len(second)} does not match {len(first)}"
        )
    diff = np.asarray(first, dtype=np.float64) - np.asarray(second, dtype=np.float64)
    return float(np.linalg.norm(diff))


def compare(
    reference: Sequence[float],
    candidate: Sequence[float],
    threshold: float = DEFAULT_THRESHOLD,
) -> MatchResult:
    """Compare a candidate embedding against a reference."""
    distance = euclidean_distance(reference, candidate)
    return MatchResult(distance=distance, matched=distance < threshold)


def normalize_embedding(
    values: Sequence[float], expected_length: int | None = None
) -> tuple[float, ...]:
    """Validate a client-supplied embedding and return it as a tuple."""
    if not values:
        raise InvalidPayload("Embedding is empty")
    embedding = tuple(float(value) for value in values)
    if not all(math.isfinite(value) for value in embedding):
        raise InvalidPayload("Embedding contains non-finite values")
    if expected_length and len(embedding) != expected_length:
        logger.warning(
            "Rejected embedding of length %s (expected %s)",
            len(embedding),
            expected_length,
        )
        raise DimensionMismatch(
            f"Embedding length {len(embedding)} does not match {expected_length}"
        )
    return embedding
