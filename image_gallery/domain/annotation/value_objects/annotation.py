"""
Annotation Value Object

Represents the structured output of the AI vision service for one image:
a short caption, a set of keyword tags and an ordered list of dominant colors.

Responsibility:
    - Encapsulate annotation fields as one immutable value
    - Normalize tags (set semantics) and colors (ordered, lowercase)
    - Provide the best-effort fallback used for unparseable AI output

Architecture Notes:
    - Value Object (immutable, defined by values)
    - Uses Pydantic for validation
    - Part of annotation subdomain
    - No external dependencies
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator


def _normalize_labels(values: Any) -> list[str]:
    """Lowercase, strip and de-duplicate labels keeping first-seen order."""
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]

    seen: set[str] = set()
    labels: list[str] = []
    for value in values:
        if value is None:
            continue
        label = str(value).strip().lower()
        if label and label not in seen:
            seen.add(label)
            labels.append(label)
    return labels


class Annotation(BaseModel):
    """
    Immutable value object holding one AI annotation.

    Attributes:
        description: Free-text caption of the image
        tags: Unique keyword tags, lowercase, first-seen order (set semantics)
        colors: Dominant color labels, lowercase, in the order the service listed them

    Examples:
        >>> annotation = Annotation(
        ...     description="A red bicycle leaning on a wall",
        ...     tags=["Bicycle", "wall", "bicycle"],
        ...     colors=["Red", "grey"],
        ... )
        >>> annotation.tags
        ('bicycle', 'wall')
        >>> annotation.colors
        ('red', 'grey')

    Validation Rules:
        - description is always a string, kept verbatim (may be empty)
        - tags/colors accept a single string or any iterable of labels
        - blank labels are dropped
    """

    description: str = Field(default="", description="Short caption of the image")

    tags: tuple[str, ...] = Field(
        default=(), description="Keyword tags (unique, lowercase)"
    )

    colors: tuple[str, ...] = Field(
        default=(), description="Dominant colors (ordered, lowercase)"
    )

    model_config = {
        "frozen": True,  # Immutable value object
        "json_schema_extra": {
            "examples": [
                {
                    "description": "A red bicycle leaning on a brick wall",
                    "tags": ["bicycle", "wall", "street"],
                    "colors": ["red", "brown", "grey"],
                }
            ]
        },
    }

    @field_validator("description", mode="before")
    @classmethod
    def validate_description(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    @field_validator("tags", "colors", mode="before")
    @classmethod
    def validate_labels(cls, value: Any) -> tuple[str, ...]:
        return tuple(_normalize_labels(value))

    @classmethod
    def from_raw_text(cls, raw_text: str | None) -> "Annotation":
        """
        Build the best-effort annotation used when AI output cannot be parsed.

        Malformed AI output must never fail a job, so the raw text becomes
        the description and tags/colors stay empty.

        Args:
            raw_text: Raw message content returned by the AI service

        Returns:
            Annotation with description=raw_text, tags=(), colors=()

        Examples:
            >>> Annotation.from_raw_text("Sorry, I cannot see the image").tags
            ()
        """
        return cls(description=raw_text or "", tags=(), colors=())

    def to_dict(self) -> dict[str, Any]:
        """Serialize to plain JSON-compatible dict (lists instead of tuples)."""
        return {
            "description": self.description,
            "tags": list(self.tags),
            "colors": list(self.colors),
        }
