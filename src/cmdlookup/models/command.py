from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CommandSource(StrEnum):
    """Which backend produced a Command instance."""

    SQLITE = "sqlite"
    MEMORY = "memory"
    LEGACY = "local_db"
    API = "api"  # external lookup placeholder, never produced locally


class Command(BaseModel):
    """Command value object exchanged at every boundary.

    Serialises with camelCase keys (``standsFor``) for the bridge and the
    seed/import format; snake_case names are accepted on input as well.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int | None = None
    name: str
    stands_for: str = ""
    summary: str = ""
    description: str = ""  # Display alias of summary
    examples: list[str] = []
    category: str = ""
    content: str | None = None  # Primary ("tldr") body
    source: CommandSource | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Command name must not be empty")
        return v

    @field_validator("stands_for", "summary", "description", "category", mode="before")
    @classmethod
    def none_to_empty(cls, v: object) -> object:
        return "" if v is None else v

    @model_validator(mode="after")
    def fill_summary_alias(self) -> Command:
        # Legacy records carry only a description; stored rows only a summary.
        if not self.summary:
            self.summary = self.description
        if not self.description:
            self.description = self.summary
        return self
