"""
Builders for Firestore structuredQuery objects.

Only the operators the service needs are exposed; the output is the exact JSON
body accepted by the documents:runQuery endpoint.
"""

from enum import Enum
from typing import Any, Dict, Optional

from app.firestore.values import encode_value


class FieldOperator(str, Enum):
    LESS_THAN = "LESS_THAN"
    EQUAL = "EQUAL"


def field_filter(field_path: str, op: FieldOperator, value: Any) -> Dict[str, Any]:
    return {
        "fieldFilter": {
            "field": {"fieldPath": field_path},
            "op": FieldOperator(op).value,
            "value": encode_value(value),
        }
    }


def and_filter(*filters: Dict[str, Any]) -> Dict[str, Any]:
    """Conjunction of filters. A single filter is returned unwrapped."""
    if not filters:
        raise ValueError("and_filter requires at least one filter")
    if len(filters) == 1:
        return filters[0]
    return {"compositeFilter": {"op": "AND", "filters": list(filters)}}


def structured_query(
    collection_id: str, where: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    query: Dict[str, Any] = {"from": [{"collectionId": collection_id}]}
    if where:
        query["where"] = where
    return {"structuredQuery": query}
