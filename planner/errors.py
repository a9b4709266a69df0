from typing import Any


class PlannerError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message}


class ValidationError(PlannerError):
    status_code = 400


class NotFoundError(PlannerError):
    status_code = 404


class UpstreamError(PlannerError):
    status_code = 502


class ConfigurationError(PlannerError):
    status_code = 500
