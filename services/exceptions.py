"""
API Exceptions

Errors raised by services and route decorators and rendered by the
application's JSON error handler as
``{"error": code, "message": message, "details": {...}}``.
"""


class ApiError(Exception):
    """Base exception for all errors surfaced to API clients."""
    status_code = 400
    code = 'BAD_REQUEST'
    default_message = 'Bad request'

    def __init__(self, message: str = None, details: dict = None, code: str = None):
        self.message = message or self.default_message
        self.details = details or {}
        if code:
            self.code = code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            'error': self.code,
            'message': self.message,
            'details': self.details,
        }


class ValidationFailed(ApiError):
    """Request body failed form validation. Details map field -> messages."""
    code = 'VALIDATION_ERROR'
    default_message = 'Invalid request data'


class Conflict(ApiError):
    status_code = 409
    code = 'CONFLICT'
    default_message = 'The request conflicts with existing data'


class MissingBusinessAccount(ApiError):
    status_code = 403
    code = 'MISSING_BUSINESS_ACCOUNT'
    default_message = 'Could not determine the business account for this user'


class AccountInactive(ApiError):
    status_code = 403
    code = 'ACCOUNT_INACTIVE'
    default_message = 'This business account is inactive. Contact your administrator.'


class EntitlementError(ApiError):
    """
    Negative entitlement decision.

    Always 403, distinct from the 401 returned for authentication failures.
    """
    status_code = 403
    code = 'ENTITLEMENT_DENIED'


class ModuleNotAvailable(EntitlementError):
    """The tenant's plan does not include the module. Needs a plan change."""
    code = 'MODULE_NOT_AVAILABLE'
    default_message = 'This module is not included in your plan. Contact your administrator to upgrade.'


class PlanLimitExceeded(EntitlementError):
    """The module is included but the tenant is at its item limit."""
    code = 'PLAN_LIMIT_EXCEEDED'
    default_message = 'You have reached the limit of your plan. Upgrade to add more.'


class InsufficientRole(EntitlementError):
    """The module is included but the actor may not perform this action."""
    code = 'INSUFFICIENT_ROLE'
    default_message = 'You do not have permission to perform this action.'


class InvalidCredentials(ApiError):
    status_code = 401
    code = 'INVALID_CREDENTIALS'
    default_message = 'Invalid email or password'
