from typing import Dict, List, Optional


class OrderServiceError(Exception):
    status_code = 400
    default_code = "OrderServiceError"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        errors: Optional[List[Dict[str, str]]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.errors = errors or []

    def to_dict(self):
        body = {"success": False, "message": self.message, "code": self.code}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(OrderServiceError):
    default_code = "ValidationFailed"

    @classmethod
    def for_field(cls, field: str, message: str, code: Optional[str] = None):
        return cls(message, code=code, errors=[{"field": field, "message": message}])


class InvalidReferenceError(OrderServiceError):
    default_code = "ItemNotFound"


class NotFoundError(OrderServiceError):
    status_code = 404
    default_code = "OrderNotFound"


class ConflictError(OrderServiceError):
    status_code = 409
    default_code = "Conflict"
