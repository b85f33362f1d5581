class ConfigError(ValueError):
    """Configuration or clean options are missing or invalid."""


class UnsupportedDialectError(ValueError):
    """Connection dialect is not one of the supported engines."""

    def __init__(self, dialect_name: str, operation: str | None = None) -> None:
        self.dialect_name = dialect_name
        self.operation = operation
        action = f" to {operation}" if operation else ""
        super().__init__(f"Unsupported dialect{action}: {dialect_name}")
