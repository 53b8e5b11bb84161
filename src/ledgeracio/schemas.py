"""Pydantic models describing machine-readable ledgeracio output."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ReportVersionLiteral = Literal["1"]
CURRENT_REPORT_VERSION: ReportVersionLiteral = "1"


class InspectionReport(BaseModel):
    """Immutable summary of a verified allowlist."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["ledgeracio_allowlist"] = Field(
        default="ledgeracio_allowlist",
        description="Namespace for allowlist inspection reports.",
    )
    report_version: ReportVersionLiteral = Field(
        default=CURRENT_REPORT_VERSION,
        description="Version of the report schema.",
    )
    network: str = Field(..., min_length=1, description="Network display name.")
    network_tag: int = Field(..., ge=0, le=255, description="Wire network byte.")
    nonce: int = Field(..., ge=0, le=2**32 - 1, description="Allowlist nonce.")
    public_key: str = Field(
        ...,
        min_length=64,
        max_length=64,
        description="Hex public key the signature was verified against.",
    )
    addresses: list[str] = Field(
        default_factory=list,
        description="SS58 addresses in signed order.",
    )

    def model_dump_json_ready(self) -> dict[str, object]:
        """Return a JSON-serialisable payload."""

        return self.model_dump(mode="json")
