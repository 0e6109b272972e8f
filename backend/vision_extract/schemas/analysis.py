from typing import Any, Optional

from pydantic import BaseModel, Field

from vision_extract.services.models.contracts import ModelDescriptor


class AnalyzeResponse(BaseModel):
    success: bool = True
    data: Any
    metadata: dict[str, Any]


class ErrorResponse(BaseModel):
    success: bool = False
    kind: str
    message: str
    retryable: bool = False
    details: Optional[list[Any]] = None


class ModelListData(BaseModel):
    models: list[ModelDescriptor]
    total_count: int


class ModelListResponse(BaseModel):
    success: bool = True
    data: ModelListData
    metadata: dict[str, Any]


class ModelInfoResponse(BaseModel):
    success: bool = True
    data: ModelDescriptor
    metadata: dict[str, Any]


class SchemaRequest(BaseModel):
    json_structure: str = Field(..., description="Loose JSON sketch of the desired output shape")


class SchemaIssueOut(BaseModel):
    path: str
    severity: str
    message: str


class SchemaValidationResponse(BaseModel):
    is_valid: bool
    is_empty: bool
    truncated: bool = False
    errors: list[SchemaIssueOut]
    warnings: list[SchemaIssueOut]


class SchemaSampleResponse(BaseModel):
    sample: Any
    warnings: list[SchemaIssueOut]


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    services: dict[str, str]
    version: str
    uptime_seconds: float
