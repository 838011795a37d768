"""Pydantic data models for the edit generation pipeline."""
from __future__ import annotations

import re
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .property_codec import DecodedValue, PropertyType, decode, resolve_type

MAX_PROMPT_CHARS = 2000
MIN_PROMPT_CHARS = 3
MAX_SELECTED_INSTANCES = 50

_INVALID_PATH_CHARS = re.compile(r'[<>:"|?*]')
_STRIPPED_MARKUP = re.compile(r"[<>]|javascript:|data:", re.IGNORECASE)


class EditMode(str, Enum):
    """How a request is satisfied."""
    DIRECT_EDIT = "direct_edit"         # mutate existing objects and scripts
    GENERATE = "script_generation"      # create new scripts and objects


RequestSize = Literal["small", "medium", "large"]


# --- Property values ---

class TypedProperty(BaseModel):
    """A property value with the editor's type tag; ``value`` holds the wire string.

    ``type`` keeps the tag exactly as the editor names it (``BrickColor``,
    ``UDim2``); ``kind`` is the codec type used to check the value.
    """
    model_config = ConfigDict(frozen=True)

    type: str = Field(min_length=1)
    value: str

    @property
    def kind(self) -> PropertyType:
        return resolve_type(self.type) or PropertyType.STRING

    @property
    def decoded(self) -> DecodedValue:
        return decode(self.kind, self.value)


PropertyEntry = Union[TypedProperty, bool, int, float, str]


# --- Operations ---

class ScriptEdit(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: Literal["replace", "insert", "delete", "append"]
    line_number: int | None = Field(
        default=None,
        ge=1,
        validation_alias=AliasChoices("lineNumber", "line_number"),
        serialization_alias="lineNumber",
    )
    content: str | None = Field(
        default=None,
        validation_alias=AliasChoices("content", "newContent", "new_content"),
    )


class _OperationBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: list[str] = Field(min_length=1)


class ModifyInstance(_OperationBase):
    type: Literal["modify_instance"] = "modify_instance"
    properties: dict[str, PropertyEntry]


class EditScript(_OperationBase):
    type: Literal["edit_script"] = "edit_script"
    edits: list[ScriptEdit] = Field(
        min_length=1,
        validation_alias=AliasChoices("edits", "modifications"),
    )


class DeleteInstance(_OperationBase):
    type: Literal["delete_instance"] = "delete_instance"


class CreateInstance(_OperationBase):
    type: Literal["create_instance"] = "create_instance"
    class_tag: str = Field(
        validation_alias=AliasChoices("classTag", "className", "class_tag"),
        serialization_alias="classTag",
    )
    name: str
    properties: dict[str, PropertyEntry] = Field(default_factory=dict)


class CreateScript(_OperationBase):
    type: Literal["create_script"] = "create_script"
    class_tag: str = Field(
        default="Script",
        validation_alias=AliasChoices("classTag", "className", "class_tag"),
        serialization_alias="classTag",
    )
    name: str
    source: str


Operation = Annotated[
    Union[ModifyInstance, EditScript, DeleteInstance, CreateInstance, CreateScript],
    Field(discriminator="type"),
]

OPERATION_TYPES: dict[str, type[BaseModel]] = {
    "modify_instance": ModifyInstance,
    "edit_script": EditScript,
    "delete_instance": DeleteInstance,
    "create_instance": CreateInstance,
    "create_script": CreateScript,
}


class Rejection(BaseModel):
    index: int
    reason: str


class ValidationReport(BaseModel):
    accepted: list[Operation] = Field(default_factory=list)
    rejected: list[Rejection] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class GenerationResult(BaseModel):
    """Validated outcome of one generation request. Never mutated after creation."""
    model_config = ConfigDict(frozen=True)

    operations: list[Operation] = Field(default_factory=list)
    summary: str = ""
    provider_used: str = Field(serialization_alias="providerUsed")
    tokens_consumed: int = Field(default=0, ge=0, serialization_alias="tokensConsumed")
    rejected: list[Rejection] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# --- Classifier ---

class ClassificationResult(BaseModel):
    complexity_score: float = Field(ge=0, le=10, serialization_alias="complexityScore")
    mode: EditMode
    estimated_cost: int = Field(ge=1, serialization_alias="estimatedCost")
    deletion_requested: bool = Field(default=False, serialization_alias="deletionRequested")
    matched_keywords: list[str] = Field(default_factory=list, serialization_alias="matchedKeywords")
    direct_edit_votes: float = Field(default=0, serialization_alias="directEditVotes")
    generation_votes: float = Field(default=0, serialization_alias="generationVotes")


# --- Inbound requests ---

class SelectedInstance(BaseModel):
    name: str
    class_tag: str = Field(
        validation_alias=AliasChoices("className", "classTag", "class_tag"),
        serialization_alias="className",
    )
    path: list[str] = Field(min_length=1)

    @field_validator("path")
    @classmethod
    def _reject_invalid_path_chars(cls, value: list[str]) -> list[str]:
        for part in value:
            if _INVALID_PATH_CHARS.search(part):
                raise ValueError("Invalid characters in path")
        return value


def _sanitize_prompt(value: Any) -> Any:
    if isinstance(value, str):
        return _STRIPPED_MARKUP.sub("", value).strip()
    return value


class _PromptRequest(BaseModel):
    prompt: str = Field(
        min_length=MIN_PROMPT_CHARS,
        max_length=MAX_PROMPT_CHARS,
        pattern=r"^[^<>{}]*$",
    )
    selected_instances: list[SelectedInstance] = Field(
        default_factory=list,
        max_length=MAX_SELECTED_INSTANCES,
        validation_alias=AliasChoices("selectedInstances", "selected_instances"),
    )
    request_size: RequestSize = Field(
        default="medium",
        validation_alias=AliasChoices("requestSize", "request_size"),
    )

    @field_validator("prompt", mode="before")
    @classmethod
    def _clean_prompt(cls, value: Any) -> Any:
        return _sanitize_prompt(value)


class GenerateRequest(_PromptRequest):
    scene_tree: dict[str, Any] = Field(
        validation_alias=AliasChoices("sceneTree", "gameTree", "scene_tree"),
    )
    mode: Literal["direct_edit", "script_generation", "auto"] = "auto"


class AnalyzeRequest(_PromptRequest):
    scene_tree: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("sceneTree", "gameTree", "scene_tree"),
    )


class SwitchProviderRequest(BaseModel):
    provider: str = Field(min_length=1)
