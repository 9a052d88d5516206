"""
Error kinds raised by the services and the uniform JSON envelope they render to.
"""
from fastapi import HTTPException


class NotFoundError(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=404, detail=detail)


class BadRequestError(HTTPException):
    def __init__(self, detail: str = "Bad request"):
        super().__init__(status_code=400, detail=detail)


class InsufficientStockError(BadRequestError):
    def __init__(self, product_name: str, available: int):
        super().__init__(f"Not enough stock for {product_name}. Available: {available}")
        self.product_name = product_name
        self.available = available


class UnauthorizedError(HTTPException):
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(HTTPException):
    def __init__(self, detail: str = "Forbidden"):
        super().__init__(status_code=403, detail=detail)


class ConflictError(HTTPException):
    def __init__(self, detail: str = "Conflict"):
        super().__init__(status_code=409, detail=detail)


ERROR_NAMES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
}


def error_body(status_code: int, message: str) -> dict:
    return {
        "success": False,
        "message": message,
        "error": ERROR_NAMES.get(status_code, "Error"),
        "status_code": status_code,
    }
