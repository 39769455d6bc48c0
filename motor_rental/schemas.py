from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from motor_rental.core.enums import (
    AdjustmentKind,
    CollateralKind,
    CompletionStatus,
    DurationUnit,
    FineMethod,
)


class Adjustment(BaseModel):
    description: str = Field(min_length=1)
    amount: int = Field(ge=0)
    kind: AdjustmentKind


# Requests


class CreateRentalRequest(BaseModel):
    vehicle_id: int = Field(ge=1)
    renter_id: int = Field(ge=1)
    start_at: str = Field(description="YYYY-MM-DD or YYYY-MM-DDTHH:mm, WIB")
    agreed_return_at: str = Field(description="YYYY-MM-DD or YYYY-MM-DDTHH:mm, WIB")
    duration_unit: DurationUnit
    collateral: List[CollateralKind] = Field(default_factory=list)
    payment_method: Optional[str] = None
    adjustments: List[Adjustment] = Field(default_factory=list)
    notes: Optional[str] = None


class UpdateRentalRequest(BaseModel):
    agreed_return_at: Optional[str] = None
    adjustments: Optional[List[Adjustment]] = None
    collateral: Optional[List[CollateralKind]] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None


class ExtendRentalRequest(BaseModel):
    new_agreed_return_at: str


class CompleteRentalRequest(BaseModel):
    completed_at: str
    notes: Optional[str] = Field(None, max_length=500)


class UpdateNotesRequest(BaseModel):
    notes: Optional[str] = None


class FineSimulationRequest(BaseModel):
    total_price: int = Field(ge=0)
    billable_hours: int = Field(ge=1)
    lateness_minutes: int = Field(ge=0)


# Calculation results


class AdjustmentTotals(BaseModel):
    total_discount: int = 0
    total_additional: int = 0
    net: int = 0


class FineBreakdown(BaseModel):
    fine_per_minute: int = 0
    fine_per_hour: int = 0
    fine_per_day: int = 0
    total_fine: int = 0
    penalty_applied: float = 0
    method: FineMethod = FineMethod.NO_LATENESS
    floor_applied: bool = False
    minimum_fine: int = 0
    hourly_rate: int = 0
    daily_rate: int = 0


class OverdueCalculation(BaseModel):
    is_overdue: bool
    lateness_minutes: int
    lateness_hours: int
    lateness_days: int
    status: str
    fine: int
    breakdown: FineBreakdown


class OverdueSweepResult(BaseModel):
    total: int = 0
    updated: int = 0
    overdue: int = 0
    total_fine: int = 0


class OverdueStats(BaseModel):
    total_open: int = 0
    total_overdue: int = 0
    total_minutes_overdue: int = 0
    total_hours_overdue: int = 0
    total_days_overdue: int = 0
    estimated_total_fine: int = 0


class RentalStats(BaseModel):
    total: int = 0
    active: int = 0
    overdue: int = 0
    completed: int = 0


# Records


class RentalData(BaseModel):
    id: int
    vehicle_id: int
    renter_id: int
    admin_id: int
    status: str
    start_at: datetime
    agreed_return_at: datetime
    duration_value: int
    duration_unit: DurationUnit
    base_price: int
    total_price: int
    adjustments: List[Adjustment] = Field(default_factory=list)
    collateral: List[CollateralKind] = Field(default_factory=list)
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    is_overdue: bool = False
    overdue_minutes: int = 0
    last_overdue_calc: Optional[datetime] = None
    extended_hours: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    overdue: Optional[OverdueCalculation] = None


class HistoryData(BaseModel):
    id: int
    rental_id: int
    completed_at: datetime
    completion_status: CompletionStatus
    price: int
    fine: int
    lateness_minutes: int
    completion_notes: Optional[str] = None
    vehicle_plate: str
    vehicle_brand: str
    vehicle_model: str
    vehicle_year: int
    renter_name: str
    renter_whatsapp: str
    admin_name: str
    start_at: datetime
    agreed_return_at: datetime
    duration_value: int
    duration_unit: DurationUnit
    collateral: List[CollateralKind] = Field(default_factory=list)
    payment_method: Optional[str] = None
    adjustments: List[Adjustment] = Field(default_factory=list)
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class ExtensionResult(BaseModel):
    rental: RentalData
    extended_hours: int
    extension_fee: int


class CompletionResult(BaseModel):
    message: str = "Rental completed"
    history: HistoryData
    fine: int
    lateness_minutes: int
    lateness_hours: int
    previous_status: str
    completion_status: CompletionStatus
    breakdown: FineBreakdown


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class HistoryPage(BaseModel):
    data: List[HistoryData]
    pagination: Pagination


class HistoryStats(BaseModel):
    total_histories: int = 0
    total_revenue: int = 0
    total_fines: int = 0
    status_summary: Dict[str, int] = Field(default_factory=dict)
    recent: List[HistoryData] = Field(default_factory=list)


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    ok: bool = True
