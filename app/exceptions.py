# app/exceptions.py
"""
Typed dispatch errors. Every coordinator failure is one of these; main.py
turns them into JSON responses with the status code carried on the class.
None of them are fatal: the caller refreshes and retries if it makes sense.
"""


class DispatchError(Exception):
    status_code = 400
    code = "dispatch_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(DispatchError):
    status_code = 404
    code = "not_found"


class InvalidState(DispatchError):
    status_code = 409
    code = "invalid_state"


class DriverUnavailable(DispatchError):
    status_code = 409
    code = "driver_unavailable"


class DriverMismatch(DispatchError):
    status_code = 409
    code = "driver_mismatch"


class DuplicateKey(DispatchError):
    status_code = 409
    code = "duplicate_key"


class Unauthorized(DispatchError):
    status_code = 401
    code = "unauthorized"


class Forbidden(DispatchError):
    status_code = 403
    code = "forbidden"
