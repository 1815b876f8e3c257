"""
Lookup of the normalizer for a query type.

To support a new query:
1. Add its tables to models.repository (or a new models module)
2. Subclass QueryNormalizer and implement extract()
3. Register the class in NORMALIZERS
"""

from typing import Dict, Type, Union

from core.exceptions import UnknownQueryTypeError
from ingestion.normalizers.artifacts import ArtifactsNormalizer
from ingestion.normalizers.base import QueryNormalizer
from ingestion.normalizers.extended_info import ExtendedInfoNormalizer
from models.base import QueryType

NORMALIZERS: Dict[QueryType, Type[QueryNormalizer]] = {
    QueryType.ARTIFACTS: ArtifactsNormalizer,
    QueryType.EXTENDED_INFO: ExtendedInfoNormalizer,
}


def get_normalizer(query_type: Union[str, QueryType]) -> QueryNormalizer:
    try:
        return NORMALIZERS[QueryType(query_type)]()
    except (KeyError, ValueError):
        raise UnknownQueryTypeError(
            f"No normalizer registered for query type {query_type}",
            context={
                "query_type": str(query_type),
                "supported": [q.value for q in NORMALIZERS]
            }
        )
