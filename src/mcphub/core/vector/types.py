from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

TOOL_CONTENT_TYPE = "tool"


class EmbeddingRecord(BaseModel):
    """One vectorized content unit, identified by (content_type, content_id)."""

    content_type: str = Field(..., min_length=1, max_length=50)
    content_id: str = Field(..., min_length=1, max_length=255)
    text_content: str = Field(..., description="Exact text that was embedded")
    embedding: List[float]
    dimensions: int = Field(0, description="Always equal to len(embedding)")
    metadata: Optional[Dict[str, Any]] = None
    model: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def derive_dimensions(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("dimensions"):
            embedding = data.get("embedding")
            if embedding is not None:
                data = {**data, "dimensions": len(embedding)}
        return data

    @model_validator(mode="after")
    def check_dimensions(self) -> "EmbeddingRecord":
        if self.dimensions != len(self.embedding):
            raise ValueError(
                f"dimensions ({self.dimensions}) must equal embedding length ({len(self.embedding)})"
            )
        if not self.embedding:
            raise ValueError("embedding must not be empty")
        return self


class SimilarityHit(BaseModel):
    record: EmbeddingRecord
    similarity: float


class ToolMetadata(BaseModel):
    """Metadata document stored with every ``tool`` record."""

    model_config = ConfigDict(populate_by_name=True)

    server_name: str = Field(..., alias="serverName", min_length=1)
    tool_name: str = Field(..., alias="toolName", min_length=1)
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=dict, alias="inputSchema")

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def parse_metadata(
    content_type: str, metadata: Optional[Dict[str, Any]]
) -> Optional[ToolMetadata]:
    """Return the typed metadata for a record, or None when absent or malformed."""
    if content_type != TOOL_CONTENT_TYPE or not metadata:
        return None
    try:
        return ToolMetadata.model_validate(metadata)
    except ValidationError:
        return None


IdentitySource = Literal["metadata", "parsed"]


class ToolIdentity(BaseModel):
    """Tool-facing fields recovered from a stored record.

    ``source`` is ``"metadata"`` when the fields came from the structured
    metadata document and ``"parsed"`` when they were guessed from the
    record's text because the metadata was missing or unreadable.
    """

    server_name: str
    tool_name: str
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=dict)
    source: IdentitySource = "metadata"

    @property
    def is_degraded(self) -> bool:
        return self.source == "parsed"

    def to_api_dict(self) -> Dict[str, Any]:
        return {
            "serverName": self.server_name,
            "toolName": self.tool_name,
            "description": self.description,
            "inputSchema": self.input_schema,
            "source": self.source,
        }


class ToolMatch(BaseModel):
    identity: ToolIdentity
    similarity: float
    searchable_text: str

    def to_api_dict(self) -> Dict[str, Any]:
        data = self.identity.to_api_dict()
        data["similarity"] = self.similarity
        data["searchableText"] = self.searchable_text
        return data
