"""Exceptions raised while resolving configuration and planning stacks.

Every error here is fatal to the current synth/deploy run. Nothing is retried;
re-running the deploy after fixing the cause is the recovery path.
"""
from typing import Iterable, Optional


class DeploymentError(Exception):
    """Base class for all deployment planning errors."""


class MissingDeployParameter(DeploymentError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Deploy parameter '{name}' is required (pass -c {name}=...)")
        self.name = name


class UnknownEnvironment(DeploymentError):
    def __init__(self, environment: str, available: Iterable[str]) -> None:
        self.environment = environment
        self.available = sorted(available)
        super().__init__(
            f"No configuration found for environment '{environment}'. "
            f"Available environments: {', '.join(self.available) or 'none'}"
        )


class InvalidConfiguration(DeploymentError):
    """A configuration field is missing or has the wrong type."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid configuration at '{path}': {reason}")


class UnknownSubnetType(InvalidConfiguration):
    def __init__(self, path: str, value: str) -> None:
        super().__init__(path, f"unknown subnet type '{value}'")
        self.value = value


class UnknownInstanceClassOrSize(DeploymentError):
    def __init__(self, kind: str, value: str, allowed: Iterable[str]) -> None:
        self.kind = kind
        self.value = value
        self.allowed = sorted(allowed)
        super().__init__(
            f"Invalid instance {kind} '{value}', expected one of: {', '.join(self.allowed)}"
        )


class CyclicDependency(DeploymentError):
    def __init__(self, stacks: Iterable[str]) -> None:
        self.stacks = sorted(stacks)
        super().__init__(
            f"Stacks form a dependency cycle: {', '.join(self.stacks)}"
        )


class UnresolvedExport(DeploymentError):
    def __init__(self, stack: str, export_name: str, reason: Optional[str] = None) -> None:
        self.stack = stack
        self.export_name = export_name
        super().__init__(
            f"Stack '{stack}' requires export '{export_name}' "
            f"{reason or 'which no stack produces'}"
        )


class DuplicateExport(DeploymentError):
    def __init__(self, export_name: str, producers: Iterable[str]) -> None:
        self.export_name = export_name
        self.producers = sorted(producers)
        super().__init__(
            f"Export '{export_name}' is produced by more than one stack: "
            f"{', '.join(self.producers)}"
        )


class ProviderApplyFailure(DeploymentError):
    """Opaque failure surfaced by the cloud provider's API."""

    def __init__(self, operation: str, code: str, message: str, status_code: Optional[int] = None) -> None:
        self.operation = operation
        self.code = code
        self.status_code = status_code
        super().__init__(f"{operation} failed: {code} - {message}")


class UnknownStack(DeploymentError):
    def __init__(self, stack: str, available: Iterable[str]) -> None:
        self.stack = stack
        self.available = list(available)
        super().__init__(
            f"Unknown stack '{stack}', expected one of: {', '.join(self.available)}"
        )
