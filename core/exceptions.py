"""
Custom exception classes for the MTProto Proxy Manager.
Provides specific error handling for provisioning and registry operations.
"""

class ProxyManagerError(Exception):
    """Base exception for MTProto Proxy Manager operations."""
    pass

class ConfigurationError(ProxyManagerError):
    """Raised when configuration is invalid or missing."""
    pass

class ValidationError(ProxyManagerError):
    """Raised when input validation fails."""

    def __init__(self, field: str, value: str, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Validation failed for {field}='{value}': {reason}")

# --- Provisioning errors: fatal for the install flow ---

class ProvisioningError(ProxyManagerError):
    """Base class for errors that abort a provisioning run."""
    pass

class PrivilegeError(ProvisioningError):
    """Raised when the installer is not running as root."""
    pass

class UnsupportedOSError(ProvisioningError):
    """Raised when neither a Debian-family nor a RedHat-family system is detected."""
    pass

class CommandError(ProvisioningError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, command: str, return_code: int, output: str = ""):
        self.command = command
        self.return_code = return_code
        self.output = output
        message = f"'{command}' exited with status {return_code}"
        if output:
            message += f": {output}"
        super().__init__(message)

class DependencyInstallError(CommandError):
    """Raised when installing build dependencies fails."""
    pass

class BuildError(CommandError):
    """Raised when fetching or compiling the relay binary fails."""
    pass

class FirewallError(ProvisioningError):
    """Raised when firewall rules cannot be applied."""
    pass

class TuningError(ProvisioningError):
    """Raised when kernel tunables cannot be applied."""
    pass

class EntropyUnavailable(ProvisioningError):
    """Raised when the secure random source cannot be read."""
    pass

class ServiceError(ProvisioningError):
    """Raised when system service operations fail."""

    def __init__(self, service_name: str, operation: str, reason: str):
        self.service_name = service_name
        self.operation = operation
        self.reason = reason
        super().__init__(f"Service '{service_name}' {operation} failed: {reason}")

class ServiceStartFailedError(ServiceError):
    """Raised when the service does not report an active state after starting."""

    def __init__(self, service_name: str, state: str, diagnostics: str = ""):
        self.state = state
        self.diagnostics = diagnostics
        super().__init__(service_name, "start", f"unit is '{state}' after settle period")

class ProvisioningStepError(ProxyManagerError):
    """Raised by the orchestrator when a provisioning step fails."""

    def __init__(self, step: str, cause: Exception):
        self.step = step
        self.cause = cause
        super().__init__(f"Step '{step}' failed: {cause}")

# --- Registry errors: recoverable, local to one operator command ---

class RegistryError(ProxyManagerError):
    """Base class for user registry errors."""
    pass

class DuplicateUserError(RegistryError):
    """Raised when trying to add a user that already exists."""

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"User '{username}' already exists")

class RegistryParseError(RegistryError):
    """Raised for a registry line that cannot be decoded into a user record."""

    def __init__(self, line_number: int, line: str, reason: str):
        self.line_number = line_number
        self.line = line
        self.reason = reason
        super().__init__(f"Line {line_number}: {reason}")
