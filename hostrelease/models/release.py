"""Release manifest and deployed-version marker models.

Both records are small JSON documents. They are parsed into frozen models
rather than scraped for single fields, and a parse failure says which of the
three things went wrong: the document is not JSON at all, it is JSON but not
an object, or the object lacks a required field.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import TypeVar

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictStr,
    ValidationError,
    field_serializer,
)

MANIFEST_FILENAME = "release.json"

_M = TypeVar("_M", bound=BaseModel)


class DocumentMalformedError(ValueError):
    """The document is not valid JSON, or not a JSON object."""


class DocumentFieldError(ValueError):
    """The document is a JSON object but a required field is missing or invalid."""


def parse_document(model: type[_M], text: str) -> _M:
    """Parse *text* as a JSON object and validate it into *model*."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DocumentMalformedError(f"not valid JSON: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise DocumentMalformedError(
            f"expected a JSON object, got {type(data).__name__}"
        )
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise DocumentFieldError(
            f"missing or invalid field(s): {', '.join(fields)}"
        ) from exc


class ReleaseManifest(BaseModel):
    """Build metadata written into every published release as ``release.json``."""

    model_config = ConfigDict(frozen=True)

    revision_id: StrictStr = Field(min_length=1)
    short_id: StrictStr
    branch: StrictStr
    source_repo: StrictStr
    built_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc).replace(microsecond=0)
    )
    built_by: StrictStr

    @field_serializer("built_at")
    def _serialize_built_at(self, value: datetime) -> str:
        return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    def to_json(self) -> str:
        return self.model_dump_json(indent=2) + "\n"


class DeployedVersionMarker(BaseModel):
    """What the runtime believes it is running.

    Written by the deploy procedure on the runtime side, never by hostrelease.
    Older runtimes record the revision under ``sha``; both keys are accepted.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    revision_id: StrictStr = Field(
        min_length=1, validation_alias=AliasChoices("revision_id", "sha")
    )
    short: StrictStr | None = None
    branch: StrictStr | None = None
    deployed_at: StrictStr | None = None

    @property
    def display_id(self) -> str:
        return self.short or self.revision_id[:7]
