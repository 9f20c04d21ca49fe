from typing import Optional

from pydantic import BaseModel


class WaUser(BaseModel):
    name: str
    phone: str


class ReportTask(BaseModel):
    title: str
    category: str
    evidence: Optional[str] = None


class WebhookPayload(BaseModel):
    """Report notification consumed by the report-tracking endpoint."""

    waUser: WaUser
    task: ReportTask
    waMessageId: str

    def to_json(self) -> dict:
        return self.model_dump(exclude_none=True)
