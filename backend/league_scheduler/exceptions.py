"""
Exception hierarchy for the scheduling core.

Legality rejections from the planner are returned as data (unscheduled
entries). Exceptions are only raised where a single request has to stop:
bad configuration, unknown ids, or a placement the mutator refused.
"""

from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from league_scheduler.services.constraint_evaluator import Violation


class SchedulingError(Exception):
    """Base exception for scheduling errors"""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_detail(self) -> Any:
        if self.details:
            return {"message": self.message, **self.details}
        return self.message


class SchedulingConfigurationError(SchedulingError):
    """Required planning input is missing or invalid"""

    status_code = 400


class ResourceNotFoundError(SchedulingError):
    """Referenced game, court or event does not exist"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} {resource_id} not found")


class PlacementRejectedError(SchedulingError):
    """The mutator refused a placement; nothing was written"""

    status_code = 409

    def __init__(self, violation: "Violation"):
        self.violation = violation
        super().__init__(violation.message)

    def to_detail(self) -> Any:
        return self.violation.to_dict()
