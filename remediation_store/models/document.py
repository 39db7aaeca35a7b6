"""
Remediation Metadata - Typed Store Payload

RemediationMetadata is the store-facing shape of a Remediation: every
structured field travels as explicit, typed metadata next to the embedded
text. Stores with array-valued metadata receive lists as-is; for scalar-only
stores the list fields are joined with LIST_DELIMITER on the way in and split
on the way out. The encoding never reaches the domain model.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from remediation_store.models.remediation import ErrorCategory, Remediation, Scope
from remediation_store.tools.vector_store import Document


LIST_DELIMITER = "||"
LIST_FIELDS = ("symptoms", "affected_files", "tags")


def encode_list(values: list[str]) -> str:
    return LIST_DELIMITER.join(values)


def decode_list(value: Any) -> list[str]:
    """Accept a native list or a delimiter-joined string."""
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [part for part in value.split(LIST_DELIMITER) if part]
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"expected a list or delimited string, got {type(value).__name__}")
    return [str(part) for part in value]


def _parse_timestamp(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise ValueError(f"invalid epoch timestamp {value!r}: {e}") from e
    return value


class RemediationMetadata(BaseModel):
    """Typed metadata stored with each remediation document."""

    id: str
    title: str = ""
    problem: str = ""
    root_cause: str = ""
    solution: str = ""
    code_diff: Optional[str] = None
    category: ErrorCategory = ErrorCategory.OTHER
    confidence: float
    usage_count: int = 0
    scope: Scope
    tenant_id: str
    team_id: Optional[str] = None
    project_path: Optional[str] = None
    session_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    symptoms: list[str] = Field(default_factory=list)
    affected_files: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    @field_validator("symptoms", "affected_files", "tags", mode="before")
    @classmethod
    def _decode_lists(cls, v: Any) -> list[str]:
        return decode_list(v)

    @field_validator("team_id", "project_path", "session_id", "code_diff", mode="before")
    @classmethod
    def _empty_to_none(cls, v: Any) -> Any:
        return v or None

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _timestamps(cls, v: Any) -> Any:
        return _parse_timestamp(v)

    @classmethod
    def from_remediation(cls, rem: Remediation) -> "RemediationMetadata":
        return cls(**rem.model_dump())

    @classmethod
    def from_payload(cls, payload: dict[str, Any], fallback_id: str = "") -> "RemediationMetadata":
        """
        Decode a store payload.

        Raises:
            pydantic.ValidationError: If required fields are missing or malformed.
        """
        data = dict(payload)
        data.setdefault("id", fallback_id)
        return cls.model_validate(data)

    def to_payload(self, array_metadata: bool) -> dict[str, Any]:
        """
        Encode for a store.

        Args:
            array_metadata: True if the store accepts list-valued metadata.
        """
        payload: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "problem": self.problem,
            "root_cause": self.root_cause,
            "solution": self.solution,
            "category": self.category.value,
            "confidence": self.confidence,
            "usage_count": self.usage_count,
            "scope": self.scope.value,
            "tenant_id": self.tenant_id,
            "team_id": self.team_id or "",
            "project_path": self.project_path or "",
            "session_id": self.session_id or "",
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if self.code_diff:
            payload["code_diff"] = self.code_diff
        for name in LIST_FIELDS:
            values = getattr(self, name)
            if array_metadata:
                payload[name] = list(values)
            elif values:
                payload[name] = encode_list(values)
        return payload

    def to_remediation(self) -> Remediation:
        return Remediation(**self.model_dump())


def embedding_text(rem: Remediation) -> str:
    """Text the store embeds: title, problem and root cause, then symptoms."""
    content = f"{rem.title}\n\n{rem.problem}\n\n{rem.root_cause}"
    if rem.symptoms:
        content += "\n\nSymptoms: " + ", ".join(rem.symptoms)
    return content


def remediation_to_document(rem: Remediation, collection: str, array_metadata: bool) -> Document:
    """Build the store-facing document for a remediation."""
    metadata = RemediationMetadata.from_remediation(rem).to_payload(array_metadata)
    return Document(id=rem.id, content=embedding_text(rem), metadata=metadata, collection=collection)
