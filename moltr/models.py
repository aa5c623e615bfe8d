from dataclasses import dataclass
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class Identity:
    """A resolved Tag. Carries no credential material."""
    id: str
    username: str


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=20, pattern=r'^[a-z0-9_]+$')
    walletAddress: str = Field(min_length=1)


class RegisterResponse(BaseModel):
    username: str
    walletAddress: str
    apiKey: str


class TagView(BaseModel):
    username: str
    walletAddress: str


class WalletUpdateRequest(BaseModel):
    walletAddress: str = Field(min_length=1)


class CreateReceiptRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    signature: str = Field(min_length=1)
    memo: str
    fromTag: str = Field(min_length=1)
    toTag: str = Field(min_length=1)
    amount: int = Field(
        ge=0,
        strict=True,
        validation_alias=AliasChoices("amount", "amountLamports"),
    )


class CreateReceiptResponse(BaseModel):
    id: str
    url: str


class ReceiptItem(BaseModel):
    id: str
    signature: str
    memo: str
    fromTag: str
    toTag: str
    amount: int
    createdAt: str
    url: str


class ReceiptPage(BaseModel):
    items: List[ReceiptItem]
    nextCursor: Optional[str] = None


class ObjectUploadResponse(BaseModel):
    ok: bool
    publicUrl: str


class HealthStatus(BaseModel):
    ok: bool
    db: str
    s3: str
