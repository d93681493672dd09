"""Exception taxonomy for the assessment pipeline."""


class AssessorError(Exception):
    """Base exception for the assessor service."""

    def __init__(self, code: str, message: str, details=None, status_code: int = 500):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationError(AssessorError):
    """Request or input validation failure."""

    def __init__(self, message: str, details=None):
        super().__init__("VALIDATION_ERROR", message, details, status_code=400)


class NotFoundError(AssessorError):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            "NOT_FOUND",
            f"{resource} '{resource_id}' not found",
            status_code=404,
        )
        self.resource = resource
        self.resource_id = resource_id


class ConcurrentModificationError(AssessorError):
    """The job changed underneath the caller; re-fetch before acting again."""

    def __init__(self, job_id: str, expected_status: str | None = None, actual_status: str | None = None):
        details = {"job_id": job_id}
        if expected_status is not None:
            details["expected_status"] = expected_status
        if actual_status is not None:
            details["actual_status"] = actual_status
        super().__init__(
            "CONCURRENT_MODIFICATION",
            f"Assessment job '{job_id}' was modified concurrently",
            details,
            status_code=409,
        )
        self.job_id = job_id
        self.actual_status = actual_status


class InvalidJobStateError(AssessorError):
    """The requested operation is not legal from the job's current status."""

    def __init__(self, job_id: str, status: str, operation: str):
        super().__init__(
            "INVALID_JOB_STATE",
            f"Cannot {operation} assessment job '{job_id}' while it is {status}",
            {"job_id": job_id, "status": status, "operation": operation},
            status_code=409,
        )
        self.job_id = job_id
        self.status = status


class PreviewNotAvailableError(AssessorError):
    """No generation artifact exists yet for the job."""

    def __init__(self, job_id: str):
        super().__init__(
            "PREVIEW_NOT_AVAILABLE",
            f"Assessment job '{job_id}' has no generated items yet",
            status_code=404,
        )


class ExtractionError(AssessorError):
    """The source document could not be converted to text."""

    def __init__(self, message: str, details=None):
        super().__init__("EXTRACTION_ERROR", message, details, status_code=422)


class GatewayError(AssessorError):
    """The LLM gateway failed (timeout, provider error or unusable output)."""

    def __init__(self, message: str, timeout: bool = False, details=None):
        super().__init__("GATEWAY_ERROR", message, details, status_code=502)
        self.timeout = timeout


class OperationCancelledError(AssessorError):
    """The caller's cancellation signal fired while a stage was running."""

    def __init__(self, message: str = "Operation was cancelled"):
        super().__init__("CANCELLED", message, status_code=499)
