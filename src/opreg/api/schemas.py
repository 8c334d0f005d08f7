from __future__ import annotations

"""Pydantic request/response schemas for the registry API.

These exist only for HTTP input validation; the signed message layout lives
in opreg.crypto.sig.
"""

from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field


class CallRequest(BaseModel):
    caller: str = Field(..., description="Hex Ed25519 public key of the caller")
    function: str = Field(..., description="getAccount | setAccount")
    args: Union[str, List[Any]] = Field(default="[]", description='JSON array, e.g. ["alice","addr1"]')
    nonce: int = Field(default=0, description="Client nonce covered by the signature")
    sig: str = Field(default="", description="Hex Ed25519 signature over the canonical call message")


class CallResponse(BaseModel):
    ok: bool = True
    function: str
    result: Optional[Any] = None
