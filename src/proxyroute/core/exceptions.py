class ProxyRouteError(Exception):
    pass

class ConfigError(ProxyRouteError):
    pass

class InvalidPatternError(ConfigError):
    """Pattern text is empty or cannot be used for matching."""
    pass

class StorageError(ProxyRouteError):
    pass

class DatabaseError(StorageError):
    """Database operation failed."""
    pass

class EventFormatError(ProxyRouteError):
    """Recorded host event is missing fields or has the wrong types."""
    pass

class AuditLogError(ProxyRouteError):
    """Failed to write to audit log."""
    pass
