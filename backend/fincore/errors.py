from __future__ import annotations


class InsufficientHistoryError(ValueError):
    """Raised when a forecast is requested over too few historical points."""

    def __init__(self, points: int, required: int):
        self.points = points
        self.required = required
        super().__init__(
            f"Insufficient historical data for forecasting "
            f"({points} points, minimum {required} required)"
        )


class NotFoundError(LookupError):
    def __init__(self, resource: str, resource_id: str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} {resource_id} not found")
