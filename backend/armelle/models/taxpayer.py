# /armelle/models/taxpayer.py

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

# Taxpayer records as returned by the DGI lookup service.

class Taxpayer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    niu: str = Field(..., description="Numéro d'Identifiant Unique")
    name: str = Field(..., description="Last name or company name")
    first_name: Optional[str] = None
    center: Optional[str] = Field(default=None, description="Tax center in charge of the file")
    activity: Optional[str] = None
    regime: Optional[str] = None
    status: Optional[str] = None

    @property
    def display_name(self) -> str:
        full_name = f"{self.name} {self.first_name}" if self.first_name else self.name
        return f"{full_name} - {self.center}" if self.center else full_name


class TaxpayerProfile(BaseModel):
    """Profile persisted when a user completes onboarding."""
    session_key: str
    full_name: str
    language: str = "fr"
    taxpayer: Optional[Taxpayer] = None

    @property
    def is_linked(self) -> bool:
        return self.taxpayer is not None
