"""Errors raised while assembling a scenario.

Runtime observations such as drops or missing routes are trace records, not
exceptions; only configuration problems are raised.
"""


class ConfigurationError(ValueError):
    """Invalid scenario description, detected at build time.

    Attributes:
        field: Name of the description field that failed validation.
        reason: Human readable explanation of the failure.
    """

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason
