from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional, Union
from decimal import Decimal
from datetime import datetime
from enum import Enum


class RegistrationRequest(BaseModel):
    # Required fields are declared optional here; the pipeline's validation
    # stage rejects them with a 400 before any external call.
    imageContentId: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("imageContentId", "imageCid"),
        description="IPFS CID of the captured image.",
    )
    metadataContentId: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("metadataContentId", "metadataCid"),
        description="IPFS CID of the capture metadata JSON; supplies the depth data when depthMetadata is not sent inline.",
    )
    depthMetadata: Optional[Any] = Field(None, description="Inline depth metadata payload.")
    deviceAddress: Optional[str] = Field(None, description="Device wallet address, used for attribution only.")
    mintingFee: Optional[Union[str, int, float]] = Field(None, description="Minting fee in IP tokens, e.g. \"0.1\".")
    commercialRevShare: Optional[int] = Field(None, description="Commercial revenue share percentage (0-100).")


class LicenseParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    minting_fee: Decimal # IP token units
    minting_fee_wei: int # 18-decimal base units
    commercial_rev_share: int # Percent, 0-100


class LedgerRegistration(BaseModel):
    model_config = ConfigDict(frozen=True)

    ip_id: str
    token_id: Optional[int] = None
    license_terms_ids: List[int] = []
    tx_hash: str


class ReconciliationStatus(str, Enum):
    UPDATED = "updated"
    SKIPPED = "skipped"
    ROW_NOT_FOUND = "row_not_found"
    VERIFICATION_FAILED = "verification_failed"
    ERROR = "error"


class ReconciliationOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: ReconciliationStatus
    image_cid: str
    detail: Optional[str] = None
    recorded_at: datetime

    @property
    def ok(self) -> bool:
        return self.status == ReconciliationStatus.UPDATED


class RegistrationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ipId: str
    tokenId: Optional[str] = None
    licenseTermsIds: List[str] = []
    txHash: str
    nftContract: str
    imageUrl: str
    imageCid: str
    metadataUrl: str
    metadataCid: Optional[str] = None
    ipMetadataCid: str
    ipMetadataUrl: str
    nftMetadataCid: str
    nftMetadataUrl: str
    depthMetadata: Any = None
    mintingFee: float
    commercialRevShare: int
    explorerUrl: str
    transactionUrl: str
    reconciliation: ReconciliationStatus


class RegistrationResponse(BaseModel):
    success: bool = True
    data: RegistrationResult
    timestamp: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    details: Optional[Dict[str, Any]] = None
    stage: Optional[str] = None
    timestamp: str


class ReconciliationEventsResponse(BaseModel):
    events: List[ReconciliationOutcome] = []
    counts: Dict[str, int] = {}
