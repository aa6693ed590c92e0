"""Business registry pydantic models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class BusinessRow(BaseModel):
    """One row of the instant list, read from the filter matrix."""

    id: int
    org_number: str
    name: Optional[str] = None
    industry_text1: Optional[str] = None
    revenue: Optional[int] = None
    employees: Optional[int] = None
    address_city: Optional[str] = None
    revenue_bucket: Optional[str] = None
    employee_bucket: Optional[str] = None
    has_events: Optional[bool] = None

    model_config = ConfigDict(from_attributes=True)


class BusinessExportRow(BaseModel):
    """Row written by the CSV export."""

    id: int
    orgNumber: str
    name: Optional[str] = None
    website: Optional[str] = None
    employees: Optional[int] = None
    addressStreet: Optional[str] = None
    addressPostalCode: Optional[str] = None
    addressCity: Optional[str] = None
    industryCode1: Optional[str] = None
    industryText1: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class FinancialBounds(BaseModel):
    """Min/max of the latest reported revenue and profit."""

    maxRevenue: int = 0
    minRevenue: int = 0
    maxProfit: int = 0
    minProfit: int = 0


class Industry(BaseModel):
    """Primary industry code and its description."""

    code: str
    text: str
