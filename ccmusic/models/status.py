"""Status enums and error codes."""

from enum import Enum


class TaskStatus(str, Enum):
    """Terminal state of a stage task."""

    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class Provenance(str, Enum):
    """Where a tool handle came from."""

    PRE_EXISTING = "PRE_EXISTING"  # Found on disk or configured explicitly
    PROVISIONED = "PROVISIONED"  # Downloaded or extracted during this run


class NamingPolicy(str, Enum):
    """Case handling applied by the name sanitizer."""

    LOWERCASE = "lowercase"
    PRESERVE_CASE = "preserve_case"


class ErrorCode(str, Enum):
    """Machine-readable per-file error codes."""

    ENCODE_FAIL = "ENCODE_FAIL"  # External tool exited non-zero
    TIMEOUT = "TIMEOUT"
    IO_ERROR = "IO_ERROR"  # Tool could not be started
    INVALID_NAME = "INVALID_NAME"
    OUTPUT_COLLISION = "OUTPUT_COLLISION"
