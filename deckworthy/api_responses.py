"""
API Response Utilities - Standardized error handling and responses
"""

from flask import jsonify
from functools import wraps
import logging

from sqlalchemy.exc import SQLAlchemyError

from deckworthy.exceptions import DeckworthyException

logger = logging.getLogger("main")


# API Error Codes
class ErrorCode:
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"


DEFAULT_MESSAGES = {
    ErrorCode.VALIDATION_ERROR: "Invalid request parameters",
    ErrorCode.INTERNAL_ERROR: "An unexpected error occurred",
    ErrorCode.DATABASE_ERROR: "Database unavailable",
}


def error_response(error_code=ErrorCode.INTERNAL_ERROR, message=None, details=None, status_code=400):
    """
    Standard error response format for API endpoints.
    The human readable message always lives under "error".
    """
    response = {
        "error": message or DEFAULT_MESSAGES.get(error_code, "Request failed"),
        "code": error_code,
    }
    if details:
        response["details"] = details
    return jsonify(response), status_code


def handle_api_errors(failure_message=None):
    """
    Decorator to standardize error handling for API endpoints.
    ValueError maps to 400; database and unexpected errors map to 500 with
    failure_message as the public message.
    """

    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except DeckworthyException:
                raise
            except ValueError as e:
                return error_response(ErrorCode.VALIDATION_ERROR, message=str(e), status_code=400)
            except SQLAlchemyError as e:
                logger.error(f"Database error in {f.__name__}: {e}", exc_info=True)
                return error_response(ErrorCode.DATABASE_ERROR, message=failure_message, status_code=500)
            except Exception as e:
                logger.error(f"Unhandled exception in {f.__name__}: {e}", exc_info=True)
                return error_response(ErrorCode.INTERNAL_ERROR, message=failure_message, status_code=500)

        return wrapper

    return decorator
