"""Exception types for mystic operations."""


class MysticError(Exception):
    """Base class for mystic errors."""
    pass


class PreconditionError(MysticError):
    """Raised when an operation cannot start (missing privilege, tool, input or work)."""
    pass


class UnknownServiceError(PreconditionError):
    """Raised when a service name is not in the service catalog."""

    def __init__(self, name: str, valid: list):
        self.name = name
        self.valid = list(valid)
        super().__init__(
            f"Unknown service: {name}. Valid services: {', '.join(self.valid)}"
        )


class DeploymentError(MysticError):
    """Raised when a deployment step that cannot be skipped fails."""
    pass
