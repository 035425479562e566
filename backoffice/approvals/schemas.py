"""Approval request bodies."""


from typing import Optional

from pydantic import BaseModel, Field


class ApproveBody(BaseModel):
    comments: Optional[str] = Field(None, max_length=2000)


class RejectBody(BaseModel):
    comments: str = Field(..., max_length=2000)
