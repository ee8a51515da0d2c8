from datetime import datetime

from pydantic import BaseModel


class ComplianceReport(BaseModel):
    start: datetime
    end: datetime
    total_cases: int
    closed_cases: int
    closed_before_deadline: int
    overdue_cases: int
    pending_cases: int
    compliance_rate: float
    on_time_rate: float
    average_resolution_days: float
    generated_at: datetime
