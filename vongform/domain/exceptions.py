class VongformException(Exception):
    """Base exception for all vongform errors."""
    pass

class StoreUnavailable(VongformException):
    """Raised when the key-value store cannot be reached or answers with an error."""
    def __init__(self, operation: str, key: str, cause: object):
        self.operation = operation
        self.key = key
        self.cause = cause
        super().__init__(f"Store {operation} failed for key '{key}': {cause}")

class CorruptEntry(VongformException):
    """Raised when a stored value cannot be decoded as a version string."""
    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Corrupt entry at key '{key}': {reason}")

class InvalidMutation(VongformException):
    """Raised when a --set or --rm argument is malformed."""
    def __init__(self, argument: str, reason: str):
        self.argument = argument
        self.reason = reason
        super().__init__(f"Invalid mutation '{argument}': {reason}")

class WriteFailure(VongformException):
    """Raised when the rendered manifests cannot be written to disk."""
    def __init__(self, path: str, cause: object):
        self.path = path
        self.cause = cause
        super().__init__(f"Could not write '{path}': {cause}")

class ConfigurationError(VongformException):
    """Raised when the resolved settings are invalid."""
    pass
