"""Exception hierarchy for ALB/Lambda binding operations."""


class AlbDeployError(Exception):
    """Base class for every error raised by alb_deploy."""


class ConfigError(AlbDeployError):
    """Binding configuration or project manifest is missing, corrupt or already present."""


class TemplateError(AlbDeployError, ValueError):
    """Path template references an unknown placeholder or a missing value."""


class ValidationError(AlbDeployError, ValueError):
    """Operator input violates an invariant; raised before any mutation."""


class PackagingError(AlbDeployError):
    """Function bundle directory cannot be packaged."""


class InventoryFetchError(AlbDeployError):
    """Reading the regional resource inventory failed."""


class RoleNotReadyError(AlbDeployError):
    """Execution role was still not assumable after the retry budget was spent."""


class NotFoundError(AlbDeployError):
    """A resource that must exist does not."""


class RemoteLookupError(AlbDeployError):
    """A lookup failed for a reason other than the resource being absent."""

    def __init__(self, description: str, cause: Exception):
        super().__init__(f"Could not look up {description}: {cause}")
        self.description = description
        self.cause = cause


class AmbiguousMatchError(AlbDeployError):
    """A lookup that must match one resource matched several."""

    def __init__(self, description: str, count: int):
        super().__init__(f"Expected exactly one {description}, found {count}")
        self.description = description
        self.count = count


class StaleBindingError(AlbDeployError):
    """Target group exists without the permission statement that marks a binding."""
