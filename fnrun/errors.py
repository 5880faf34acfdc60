from __future__ import annotations


class FnrunError(Exception):
    pass


class ConfigError(FnrunError):
    pass


class BuildError(FnrunError):
    def __init__(self, function: str, message: str):
        super().__init__(f"Cannot build function '{function}': {message}")
        self.function = function


class ReconcileError(FnrunError):
    def __init__(self, function: str | None, message: str):
        prefix = f"Function '{function}': " if function else ""
        super().__init__(f"{prefix}{message}")
        self.function = function
        self.rollback_failures: dict[str, Exception] = {}


class StopError(FnrunError):
    """Raised after a shutdown pass in which one or more containers could not be stopped."""

    def __init__(self, failures: dict[str, Exception]):
        detail = "; ".join(f"{name}: {err}" for name, err in failures.items())
        super().__init__(f"Cannot stop {len(failures)} function(s): {detail}")
        self.failures = dict(failures)


class InvocationError(FnrunError):
    """Transport failure while talking to a running function."""

    def __init__(self, function: str, message: str):
        super().__init__(message)
        self.function = function


class FunctionNotFound(InvocationError):
    def __init__(self, function: str):
        super().__init__(function, f"Function '{function}' not found.")


class FunctionNotRunning(InvocationError):
    def __init__(self, function: str):
        super().__init__(function, f"Function '{function}' is not running.")
