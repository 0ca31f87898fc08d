"""
Deckworthy - Custom Exceptions and Exception Handlers
"""
import structlog
from flask import jsonify, request
from werkzeug.exceptions import HTTPException

logger = structlog.get_logger('exceptions')


class DeckworthyException(Exception):
    """Base exception for Deckworthy"""
    status_code = 400

    def __init__(self, message: str, code: str = "DECKWORTHY_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self):
        return {
            'error': self.message,
            'code': self.code,
        }


class NotFoundException(DeckworthyException):
    """Requested resource does not exist"""
    status_code = 404

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, code="NOT_FOUND")


class UpstreamException(DeckworthyException):
    """A third-party API answered with something unusable"""
    status_code = 502

    def __init__(self, message: str):
        super().__init__(message, code="UPSTREAM_ERROR")
        logger.error(f"Upstream error: {message}")


class ConfigurationError(DeckworthyException):
    """A required setting or credential is missing"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message, code="CONFIGURATION_ERROR")


def register_exception_handlers(app):
    """Register exception handlers with Flask app"""

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        """Handle HTTP exceptions"""
        message = e.description
        if e.code == 404 and request.path.startswith('/api/'):
            message = 'API endpoint not found'
        return jsonify({
            'error': message,
            'code': e.name.upper().replace(' ', '_'),
        }), e.code

    @app.errorhandler(DeckworthyException)
    def handle_deckworthy_exception(e):
        """Handle Deckworthy exceptions using the status carried by the class"""
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(Exception)
    def handle_generic_exception(e):
        """Handle all other exceptions"""
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return jsonify({
            'error': 'Internal server error',
            'code': 'INTERNAL_ERROR',
        }), 500
