"""
Общие DTO и Pydantic-модели API групповых расходов.
"""

from src.shared.models.group_dto import (
    Identity,
    GroupDTO,
    MemberDTO,
    GroupExpenseDTO,
    GroupDetailDTO,
    JoinResultDTO,
    MemberTotalDTO,
    ExpenseSummaryDTO,
    utc_timestamp,
    parse_timestamp,
)
from src.shared.models.common import (
    ErrorResponse,
    OkResponse,
    HealthStatus,
)

__all__ = [
    # Groups
    "Identity",
    "GroupDTO",
    "MemberDTO",
    "GroupExpenseDTO",
    "GroupDetailDTO",
    "JoinResultDTO",
    "MemberTotalDTO",
    "ExpenseSummaryDTO",
    "utc_timestamp",
    "parse_timestamp",
    # Common
    "ErrorResponse",
    "OkResponse",
    "HealthStatus",
]
