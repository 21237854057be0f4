"""Pydantic schemas for the label printer."""

from pydantic import AliasChoices, BaseModel, Field

# Printer commands are pipe-separated and CR-terminated
_FIELD_PATTERN = r"^[^|\r\n]*$"


class PrintPouchRequest(BaseModel):
    customer: str = Field(..., min_length=1, max_length=60, pattern=_FIELD_PATTERN)
    production_date: str = Field(
        ...,
        min_length=1,
        max_length=20,
        pattern=_FIELD_PATTERN,
        validation_alias=AliasChoices("production_date", "productionDate"),
    )


class PrintPouchResponse(BaseModel):
    ok: bool
    outcome: str
    host: str
    port: int
    sent: dict[str, str]
    replies: dict[str, str]
    error: str | None = None
