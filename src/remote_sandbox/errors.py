"""
remote-sandbox error definitions

Standard exceptions raised by the remote-sandbox client.
"""

from typing import Any, Dict, List, Optional


class SandboxError(Exception):
    """Base exception for all sandbox errors"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "UNKNOWN"
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    @property
    def resource(self) -> Optional[str]:
        return self.details.get("resource")

    @property
    def operation(self) -> Optional[str]:
        return self.details.get("operation")


class AuthenticationError(SandboxError):
    """No workspace credential could be resolved, or it was rejected"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, error_code="AUTH_FAILED", details=details)


class NotFoundError(SandboxError):
    """Named remote resource does not exist"""

    def __init__(
        self,
        resource: str,
        operation: Optional[str] = None,
        message: Optional[str] = None,
    ):
        super().__init__(
            message=message or f"{resource} not found",
            error_code="NOT_FOUND",
            details={"resource": resource, "operation": operation},
        )


class InvalidPortError(SandboxError):
    """Port is reserved, out of range, or not declared on the sandbox"""

    def __init__(self, port: Any, reason: str, resource: Optional[str] = None):
        super().__init__(
            message=f"Invalid port {port}: {reason}",
            error_code="INVALID_PORT",
            details={"port": port, "resource": resource},
        )
        self.port = port
        self.reason = reason


class SandboxTimeoutError(SandboxError, TimeoutError):
    """Bounded wait elapsed before the awaited state was reached"""

    def __init__(self, what: str, timeout_sec: float, resource: Optional[str] = None):
        super().__init__(
            message=f"Timed out after {timeout_sec}s waiting for {what}",
            error_code="TIMEOUT",
            details={"resource": resource, "operation": what, "timeout_sec": timeout_sec},
        )
        self.timeout_sec = timeout_sec


class ProvisioningError(SandboxError):
    """Remote create finished in a failed state"""

    def __init__(self, resource: str, status: str, reason: Optional[str] = None):
        message = f"Provisioning {resource} failed with status '{status}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            error_code="PROVISIONING_FAILED",
            details={"resource": resource, "status": status, "operation": "create"},
        )
        self.status = status


class ConflictError(SandboxError):
    """Resource name is taken by an active resource"""

    def __init__(
        self,
        resource: str,
        operation: Optional[str] = None,
        message: Optional[str] = None,
    ):
        super().__init__(
            message=message or f"{resource} already exists and is active",
            error_code="CONFLICT",
            details={"resource": resource, "operation": operation},
        )


class ProcessExitedError(SandboxError):
    """Process ended before the ports it was expected to open were listening"""

    def __init__(
        self,
        resource: str,
        status: str,
        missing_ports: List[int],
        exit_code: Optional[int] = None,
        restart_count: int = 0,
    ):
        super().__init__(
            message=(
                f"{resource} ended with status '{status}' (exit code {exit_code}) "
                f"before listening on {missing_ports}"
            ),
            error_code="PROCESS_EXITED",
            details={
                "resource": resource,
                "operation": "wait_for_ports",
                "status": status,
                "missing_ports": missing_ports,
                "exit_code": exit_code,
                "restart_count": restart_count,
            },
        )
        self.status = status
        self.missing_ports = missing_ports
        self.exit_code = exit_code
        self.restart_count = restart_count


class InvalidRequestError(SandboxError):
    """Invalid request parameters"""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid field '{field}': {reason}",
            error_code="INVALID_REQUEST",
            details={"field": field},
        )
        self.field = field
        self.value = value
        self.reason = reason


class APIError(SandboxError):
    """Unexpected API response or transport failure"""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            error_code=error_code or (f"HTTP_{status}" if status else "REQUEST_FAILED"),
            details=details,
        )
        self.status = status


# Error codes
ERROR_CODES = {
    "AUTH_FAILED": "No usable workspace credential",
    "NOT_FOUND": "Resource does not exist",
    "INVALID_PORT": "Port not permitted",
    "TIMEOUT": "Bounded wait exceeded",
    "PROVISIONING_FAILED": "Remote create failed",
    "CONFLICT": "Resource name already active",
    "PROCESS_EXITED": "Process ended before opening its ports",
    "INVALID_REQUEST": "Invalid request parameter",
    "REQUEST_FAILED": "Transport failure",
}
