"""Domain types shared by the engine, the checks and the service layer."""

from content_integrity.domain.ids import (
    generate_execution_id,
    validate_execution_id,
)
from content_integrity.domain.models import (
    ContentIntegrityError,
    ContentIntegrityErrorList,
    ContentIntegrityResults,
    ContentNodeRef,
    ExtraInfo,
    JSONScalar,
    JSONValue,
    NodeLike,
    create_error,
    empty_error_list,
    error_type_name,
    merge_error_lists,
    single_error,
)

__all__ = [
    "ContentIntegrityError",
    "ContentIntegrityErrorList",
    "ContentIntegrityResults",
    "ContentNodeRef",
    "ExtraInfo",
    "JSONScalar",
    "JSONValue",
    "NodeLike",
    "create_error",
    "empty_error_list",
    "error_type_name",
    "generate_execution_id",
    "merge_error_lists",
    "single_error",
    "validate_execution_id",
]
