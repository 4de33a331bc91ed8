"""Pydantic v2 models for tool signatures, call results, and dependency graphs."""
from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class ToolAnnotations(BaseModel):
    """Behavior hints advertised by a tool."""
    read_only_hint: bool | None = None
    destructive_hint: bool | None = None

    model_config = {"from_attributes": True}


class ToolSignature(BaseModel):
    """A tool as discovered from the server under test."""
    name: str
    description: str = ""
    input_schema: dict[str, Any] | None = None
    annotations: ToolAnnotations | None = None

    model_config = {"from_attributes": True}


class TextContent(BaseModel):
    """A text content block."""
    type: Literal["text"] = "text"
    text: str

    model_config = {"from_attributes": True}


class BinaryContent(BaseModel):
    """A base64-encoded data block with an optional mime type."""
    type: Literal["binary"] = "binary"
    data: str
    mime_type: str | None = None

    model_config = {"from_attributes": True}


ContentBlock = Annotated[Union[TextContent, BinaryContent], Field(discriminator="type")]


class ToolCallResult(BaseModel):
    """Result of a single tool invocation."""
    content: list[ContentBlock] = Field(default_factory=list)
    is_error: bool = False

    model_config = {"from_attributes": True}


class DependencyEdge(BaseModel):
    """Output of ``from_tool`` feeds an input of ``to_tool``."""
    from_tool: str = Field(..., alias="from")
    to_tool: str = Field(..., alias="to")
    type: str = "output_input"
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    description: str = ""
    field: str | None = None

    model_config = {"from_attributes": True, "populate_by_name": True}


class DependencyGraph(BaseModel):
    """Dependency edges plus an ordered layering of tool names."""
    edges: list[DependencyEdge] = Field(default_factory=list)
    layers: list[list[str]] = Field(default_factory=list)
    entry_points: list[str] = Field(default_factory=list)
    terminal_points: list[str] = Field(default_factory=list)
    cycles: list[list[str]] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class ToolDependencyInfo(BaseModel):
    """Where a tool sits in the dependency graph."""
    tool: str
    depends_on: list[str] = Field(default_factory=list)
    provides_output_for: list[str] = Field(default_factory=list)
    sequence_position: int = 0

    model_config = {"from_attributes": True}


class InterviewQuestion(BaseModel):
    """A generated test case for one tool call."""
    description: str = ""
    category: str = "happy_path"
    args: dict[str, Any] = Field(default_factory=dict)

    model_config = {"from_attributes": True}
