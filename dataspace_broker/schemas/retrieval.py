from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, constr


class QueryInput(BaseModel):
    """Backend query parameters passed through to the data source."""

    model_config = ConfigDict(extra="forbid")

    params: Dict[str, str] = Field(default_factory=dict)
    headers: Dict[str, str] = Field(default_factory=dict)
    path: Optional[constr(max_length=2048)] = Field(
        None, description="Optional path appended to the backend URL"
    )


class RetrievalInformation(BaseModel):
    """Request-scoped information for accessing data under one agreement.

    force_download is tri-state: True always refetches, False never refetches,
    None follows the artifact's default (refetch when nothing is cached or the
    artifact is set to automated download).
    """

    model_config = ConfigDict(extra="forbid")

    transfer_contract: Optional[constr(min_length=1, max_length=2048)] = Field(
        None,
        description="Remote id of the agreement to use; None uses all linked agreements",
    )
    force_download: Optional[bool] = None
    query_input: Optional[QueryInput] = None
