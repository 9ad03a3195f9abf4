# booking/exceptions.py
#
# Error kinds raised by the booking engine, store and manager.
#
# - BookingValidationError: malformed or out-of-policy input. Subclasses
#   Django's ValidationError so forms/admin display it natively; 'code' names
#   the rule that failed and 'params' carries the offending values.
# - SlotConflictError: admission denied (overlap, slot switched off, or a
#   concurrent update won the race). The user has to pick another time;
#   never retry it blindly.
# - BookingNotFoundError: referenced slot/booking does not exist.
#
from django.core.exceptions import ObjectDoesNotExist, ValidationError


class BookingValidationError(ValidationError):
    pass


class SlotConflictError(Exception):
    def __init__(self, message, code="conflict", params=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.params = params or {}


class BookingNotFoundError(ObjectDoesNotExist):
    def __init__(self, message, code="not_found", params=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.params = params or {}
