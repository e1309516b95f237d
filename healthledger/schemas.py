"""
Read views returned by the ledger operations.
"""

from pydantic import BaseModel, ConfigDict, Field

from .ledger.models import Role


class ServiceProvider(BaseModel):
    """A healthcare organization that employs doctors."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., ge=1)
    name: str


class UserProfile(BaseModel):
    """Stored user profile, tombstoned users included."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., ge=1)
    identity: str
    name: str
    role: Role
    provider_id: int = Field(..., ge=1)
    exists: bool


class HealthRecord(BaseModel):
    """A note about one patient, authored by one doctor at one provider."""

    model_config = ConfigDict(from_attributes=True)

    patient_id: int = Field(..., ge=1)
    record_id: int = Field(..., ge=1)
    health_remarks: str
    doctor_id: int
    provider_id: int
