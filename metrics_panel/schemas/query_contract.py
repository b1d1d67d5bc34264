"""
Console Query API Contract Schemas

Code-first schema definitions using Pydantic for the three console endpoints
the panel consumes (instant query, range query, label-value lookup). They
serve as runtime validation for responses and as typed request builders.

Result items are kept as plain mappings here; the domain layer turns them
into tagged instant/range series.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SUCCESS_CODE = 200
SUCCESS_STATUS = "success"


class QueryKind(str, Enum):
    """Kind of query call issued against the console"""

    INSTANT = "instant"
    RANGE = "range"


class ErrorKind(str, Enum):
    """Failure classes, used as the ``error_kind`` log field"""

    TRANSPORT_FAILURE = "transport_failure"
    QUERY_FAILURE = "query_failure"
    TIMEOUT = "timeout"
    LOOKUP_FAILURE = "lookup_failure"
    PARTIAL_SOURCE_FAILURE = "partial_source_failure"


# Query responses


class SourceResultData(BaseModel):
    """Per-datasource result payload (Prometheus ``data`` block)"""

    model_config = ConfigDict(extra="allow")

    result_type: Optional[str] = Field(None, alias="resultType")
    result: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("result", mode="before")
    @classmethod
    def _none_result_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class SourceResult(BaseModel):
    """One datasource's answer inside a console query envelope"""

    model_config = ConfigDict(extra="allow")

    status: str = ""
    data: Optional[SourceResultData] = None
    error_type: Optional[str] = Field(None, alias="errorType")
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        """True when the datasource answered with status ``success``."""
        return self.status == SUCCESS_STATUS

    @property
    def results(self) -> List[Dict[str, Any]]:
        """Result entries, empty when the block is missing."""
        if self.data is None:
            return []
        return self.data.result


class QueryEnvelope(BaseModel):
    """Console response wrapper for instant and range queries"""

    model_config = ConfigDict(extra="allow")

    code: int
    msg: Optional[str] = None
    data: List[SourceResult] = Field(default_factory=list)

    @field_validator("data", mode="before")
    @classmethod
    def _none_data_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def ok(self) -> bool:
        """True when the envelope reports success."""
        return self.code == SUCCESS_CODE


# Label values


class LabelValuesRequest(BaseModel):
    """Request for the distinct values of one label"""

    datasource_id: str = Field(..., min_length=1)
    label_name: str = Field(..., min_length=1)
    metric_name: Optional[str] = Field(
        None, description="Optional metric filter; omitted from the call if empty"
    )

    def to_params(self) -> Dict[str, str]:
        """Return the query-string parameters in the console's naming."""
        params = {"datasourceId": self.datasource_id, "labelName": self.label_name}
        if self.metric_name:
            params["metricName"] = self.metric_name
        return params


class LabelValuesResponse(BaseModel):
    """Label-value lookup response"""

    model_config = ConfigDict(extra="allow")

    code: int
    msg: Optional[str] = None
    data: Optional[List[str]] = None

    @property
    def ok(self) -> bool:
        """True when the lookup succeeded and carries a value list."""
        return self.code == SUCCESS_CODE and isinstance(self.data, list)
