"""
Tourism domain Pydantic schemas for request bodies.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BatchOperation(BaseModel):
    """One operation inside a batch request"""

    operation: str = Field(..., description="오퍼레이션 이름", examples=["areaBasedList"])
    params: Dict[str, Any] = Field(default_factory=dict, description="오퍼레이션 파라미터")


class BatchOptions(BaseModel):
    concurrency: Optional[int] = Field(None, ge=1, le=50, description="동시 실행 개수")
    maxBatchSize: Optional[int] = Field(None, ge=1, le=100, description="허용 오퍼레이션 개수")


class BatchRequest(BaseModel):
    """Batch of independent operations"""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "operations": [
                    {"operation": "areaCode", "params": {}},
                    {"operation": "detailCommon", "params": {"contentId": "126508"}},
                ],
                "options": {"concurrency": 2},
            }
        }
    )

    operations: List[BatchOperation] = Field(..., description="실행할 오퍼레이션 목록")
    options: BatchOptions = Field(default_factory=BatchOptions)
