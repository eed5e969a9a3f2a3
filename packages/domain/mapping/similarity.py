"""
Similarity Calculator - Cosine similarity and memoized text similarity

The text-similarity cache is keyed on the sorted pair of strings, so
(a, b) and (b, a) share one entry. The cache grows for the life of the
process; callers clear it between independent workloads.
"""
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np
import structlog

from packages.domain.mapping.errors import DimensionMismatchError
from packages.domain.mapping.mapping_logger import MappingLogger
from packages.domain.mapping.text_processing import TextProcessor

logger = structlog.get_logger()

VectorLike = Union[np.ndarray, Sequence[float]]


class SimilarityCalculator:
    """Vector and text similarity shared by the mapping stages."""

    def __init__(
        self,
        text_processor: Optional[TextProcessor] = None,
        mapping_logger: Optional[MappingLogger] = None,
    ):
        self.text_processor = text_processor or TextProcessor()
        self.mapping_logger = mapping_logger or MappingLogger()
        self._cache: Dict[Tuple[str, str], float] = {}

    def cosine(self, vector_a: VectorLike, vector_b: VectorLike) -> float:
        """
        Cosine similarity of two equal-length vectors.

        Zero vectors have similarity 0.0 with everything.

        Raises:
            DimensionMismatchError: vectors were built from different vocabularies
        """
        a = np.asarray(vector_a, dtype=float)
        b = np.asarray(vector_b, dtype=float)
        if a.shape != b.shape:
            raise DimensionMismatchError(
                "Vectors must have the same length",
                length_a=int(a.size),
                length_b=int(b.size),
            )

        norm_product = float(np.linalg.norm(a)) * float(np.linalg.norm(b))
        if norm_product == 0:
            return 0.0
        return float(np.dot(a, b)) / norm_product

    def text_similarity(self, text1: str, text2: str) -> float:
        """Memoized lexical similarity; symmetric by construction"""
        key = self._cache_key(text1, text2)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        similarity = self.text_processor.calculate_similarity(*key)
        self._cache[key] = similarity

        logger.debug("text_similarity_computed",
                     similarity=similarity,
                     text_length_1=len(text1),
                     text_length_2=len(text2))

        return similarity

    @staticmethod
    def _cache_key(text1: str, text2: str) -> Tuple[str, str]:
        first, second = sorted((text1, text2))
        return first, second

    def clear_cache(self) -> None:
        self._cache.clear()
        self.mapping_logger.log("info", "similarity_cache_cleared")

    def get_cache_size(self) -> int:
        return len(self._cache)
