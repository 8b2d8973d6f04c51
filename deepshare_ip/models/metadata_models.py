from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional


class IpCreator(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    address: str = Field(..., description="Attribution label; not validated as a checksummed address.")
    contributionPercent: int = Field(..., ge=0, le=100)


class IpAttribute(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    value: str


class IpMetadata(BaseModel):
    """Story Protocol IP metadata document (published to IPFS, never edited)."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    createdAt: str = Field(..., description="Unix timestamp (seconds) as a string.")
    creators: List[IpCreator]
    image: str = Field(..., description="ipfs:// URI of the captured image.")
    imageHash: str
    mediaUrl: str = Field(..., description="ipfs:// URI of the full depth payload (or the image).")
    mediaHash: str
    mediaType: str
    attributes: List[IpAttribute] = []

    @model_validator(mode="after")
    def check_contributions(self):
        total = sum(c.contributionPercent for c in self.creators)
        if self.creators and total != 100:
            raise ValueError(f"Creator contribution percentages must sum to 100, got {total}")
        return self


class NftAttribute(BaseModel):
    model_config = ConfigDict(frozen=True)

    trait_type: str
    value: str


class NftMetadata(BaseModel):
    """OpenSea-compatible NFT metadata document."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    image: str
    animation_url: Optional[str] = None # Dropped from the serialized document when absent
    external_url: str
    attributes: List[NftAttribute] = []
