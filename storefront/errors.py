"""
Order errors. Each maps to one 4xx response; none are retried internally.
"""


class OrderError(Exception):
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(OrderError):
    status_code = 404


class InvalidArgumentError(OrderError):
    status_code = 400


class InvalidTransitionError(OrderError):
    """Target state is not reachable from the current state."""
    status_code = 400

    def __init__(self, current_state: str, target_state: str, field: str = "status"):
        self.current_state = current_state
        self.target_state = target_state
        self.field = field
        super().__init__(f"Cannot change {field} from '{current_state}' to '{target_state}'")


class ForbiddenError(OrderError):
    status_code = 403
