"""Resolution of face embeddings for uploaded images."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from face_verify.domain.errors import InvalidPayload
from face_verify.services.matching import normalize_embedding


class EmbeddingExtractor(Protocol):
    """Interface for an external face embedding model."""

    async def extract(self, image: str) -> list[float]:
        """Return the embedding of the single face in the image.

        Raises NoFaceDetected or AmbiguousFace when the image holds zero or
        several faces.
        """


@dataclass
class EmbeddingService:
    """Validates client descriptors or falls back to the extractor."""

    extractor: EmbeddingExtractor | None = None
    expected_length: int | None = None

    async def resolve(
        self, image: str, descriptor: Sequence[float] | None
    ) -> tuple[float, ...]:
        """Return a validated embedding for an uploaded image."""
        if descriptor is not None:
            return normalize_embedding(descriptor, self.expected_length)
        if self.extractor is None:
            raise InvalidPayload("faceDescriptor is required")
        extracted = await self.extractor.extract(image)
        return normalize_embedding(extracted, self.expected_length)
