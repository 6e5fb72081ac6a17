# Response models
from pydantic import BaseModel


class TransferResponse(BaseModel):
    txHash: str
    link: str


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str
    wallet: str
