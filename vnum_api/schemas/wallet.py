from datetime import date
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class WalletCredit(BaseModel):
    amount: Decimal = Field(..., gt=0, description="Amount to add to the wallet")
    description: Optional[str] = Field(None, max_length=255)
    reference: Optional[str] = Field(None, max_length=100)
    validity_date: Optional[date] = Field(
        None, description="Custom validity end date; defaults to now + DEFAULT_VALIDITY_DAYS"
    )


class WalletDebit(BaseModel):
    amount: Decimal = Field(..., gt=0, description="Amount to take from the wallet")
    description: Optional[str] = Field(None, max_length=255)
    reference: Optional[str] = Field(None, max_length=100)


class ValidityReset(BaseModel):
    validity_days: Optional[int] = Field(None, gt=0, le=3650)
    validity_date: Optional[date] = None
