"""
Error Handlers for the Prizeversity economy.

Provides:
- The exception taxonomy raised by the economy services
- Consistent error response format
- Flask error handlers
"""

from typing import Any, Dict, Optional

from flask import current_app, jsonify, request
from marshmallow import ValidationError as SchemaValidationError


class PrizeversityError(Exception):
    """Base exception class for the economy core."""

    def __init__(
        self,
        message: str,
        code: str = 'UNKNOWN_ERROR',
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for JSON response."""
        response = {
            'success': False,
            'message': self.message,
            'code': self.code,
        }
        if self.details:
            response['details'] = self.details
        return response


class ValidationError(PrizeversityError):
    """Malformed input: rejected before any mutation."""

    def __init__(self, message: str = 'Validation failed', errors: Dict = None):
        super().__init__(
            message=message,
            code='VALIDATION_ERROR',
            status_code=400,
            details={'errors': errors} if errors else None
        )


class PolicyError(PrizeversityError):
    """The actor lacks permission for the operation."""

    def __init__(self, message: str = 'Access denied'):
        super().__init__(message=message, code='POLICY_DENIED', status_code=403)


class NotFoundError(PrizeversityError):
    """Resource not found."""

    def __init__(self, message: str = 'Resource not found', resource: str = None):
        super().__init__(
            message=message,
            code='NOT_FOUND',
            status_code=404,
            details={'resource': resource} if resource else None
        )


class ConflictError(PrizeversityError):
    """A state machine precondition does not hold."""

    def __init__(self, message: str = 'Conflict', code: str = 'CONFLICT', status_code: int = 409,
                 details: Dict = None):
        super().__init__(message=message, code=code, status_code=status_code, details=details)


class UsesExhaustedError(ConflictError):
    """A mystery box has no opens left for this student."""

    def __init__(self, message: str = 'Maximum opens reached for this mystery box'):
        super().__init__(message=message, code='USES_EXHAUSTED', status_code=403)


class AccountFrozenError(ConflictError):
    """Spending is blocked while a siphon against the account is open."""

    def __init__(self, message: str = 'Your balance is frozen during a siphon review', expires_at=None):
        super().__init__(
            message=message,
            code='ACCOUNT_FROZEN',
            status_code=403,
            details={'frozenUntil': expires_at.isoformat()} if expires_at else None
        )


class InsufficientFundsError(PrizeversityError):
    """The balance cannot cover a debit at commit time."""

    def __init__(self, message: str = 'Insufficient balance', balance: int = None, required: int = None):
        details = None
        if balance is not None and required is not None:
            details = {'balance': balance, 'required': required}
        super().__init__(message=message, code='INSUFFICIENT_FUNDS', status_code=400, details=details)


class TransientPersistenceError(PrizeversityError):
    """Storage write failed; the whole operation should be retried."""

    def __init__(self, message: str = 'Storage temporarily unavailable, please retry'):
        super().__init__(message=message, code='TRANSIENT_PERSISTENCE', status_code=503)


def error_response(
    message: str,
    code: str = 'ERROR',
    status_code: int = 400,
    details: Dict = None
) -> tuple:
    """Create a standardized error response."""
    response = {
        'success': False,
        'message': message,
        'code': code
    }
    if details:
        response['details'] = details

    return jsonify(response), status_code


def success_response(data: Any = None, message: str = None) -> dict:
    """Create a standardized success response."""
    response = {'success': True}
    if data is not None:
        response.update(data)
    if message:
        response['message'] = message
    return response


def register_error_handlers(app):
    """Register error handlers with Flask app."""

    @app.errorhandler(PrizeversityError)
    def handle_prizeversity_error(error):
        if error.status_code >= 500:
            current_app.logger.error(f"{error.code}: {error.message}")
        else:
            current_app.logger.info(f"{error.code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SchemaValidationError)
    def handle_schema_error(error):
        return error_response('Invalid request payload', 'VALIDATION_ERROR', 400, {'errors': error.messages})

    @app.errorhandler(404)
    def handle_not_found(error):
        if request.path.startswith('/api/'):
            return error_response('Endpoint not found', 'NOT_FOUND', 404)
        return error

    @app.errorhandler(500)
    def handle_internal_error(error):
        current_app.logger.exception('Internal server error')
        if request.path.startswith('/api/'):
            return error_response('Internal server error', 'SERVER_ERROR', 500)
        return error
