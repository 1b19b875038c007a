"""
Pydantic schemas for Firestore documents.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from app.firestore.values import decode_fields


class FirestoreDocument(BaseModel):
    """A document as returned by the REST API, with fields already decoded."""

    name: str  # projects/{p}/databases/{d}/documents/{collection}/{id}
    fields: Dict[str, Any] = Field(default_factory=dict)
    create_time: Optional[str] = None
    update_time: Optional[str] = None

    @property
    def id(self) -> str:
        return self.name.rsplit("/", 1)[-1]

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "FirestoreDocument":
        return cls(
            name=payload["name"],
            fields=decode_fields(payload.get("fields", {})),
            create_time=payload.get("createTime"),
            update_time=payload.get("updateTime"),
        )
