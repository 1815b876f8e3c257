from ingestion.normalizers.artifacts import ArtifactsNormalizer
from ingestion.normalizers.base import QueryNormalizer
from ingestion.normalizers.extended_info import ExtendedInfoNormalizer
from ingestion.normalizers.registry import get_normalizer

__all__ = [
    "QueryNormalizer",
    "ArtifactsNormalizer",
    "ExtendedInfoNormalizer",
    "get_normalizer",
]
