# trucktrack/exceptions.py

class TruckTrackError(Exception):
    status_code = 400
    message = 'The request could not be processed.'

    def __init__(self, message=None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self):
        return {'message': self.message, 'error': type(self).__name__}


class ValidationError(TruckTrackError):
    status_code = 400
    message = 'Please provide all required fields.'


class NotFoundError(TruckTrackError):
    status_code = 404
    message = 'Record not found.'


class DuplicateError(TruckTrackError):
    status_code = 409
    message = 'Record already exists.'


class DuplicateUsername(DuplicateError):
    message = 'Username already exists.'


class ConflictError(TruckTrackError):
    status_code = 409
    message = 'The requested resources are already booked.'


class Unauthenticated(TruckTrackError):
    status_code = 401
    message = 'Unauthorized access. Please log in.'


class MissingToken(Unauthenticated):
    message = 'Missing bearer token.'


class InvalidOrExpiredToken(Unauthenticated):
    message = 'Invalid or expired token.'


class InvalidCredentials(Unauthenticated):
    message = 'Invalid username or password.'


class Forbidden(TruckTrackError):
    status_code = 403
    message = 'You do not have permission to perform this action.'


class InvalidRoleKey(Forbidden):
    message = 'Invalid key for the requested role.'


class AccountUnverified(Forbidden):
    message = 'Account is not verified. Please check your email for the OTP.'


class NoPendingRegistration(NotFoundError):
    message = 'No pending registration for this email.'


class OtpExpired(TruckTrackError):
    status_code = 400
    message = 'OTP has expired. Please register again.'


class OtpMismatch(TruckTrackError):
    status_code = 400
    message = 'Invalid OTP.'


class ExternalServiceError(TruckTrackError):
    status_code = 502
    message = 'An external service is unavailable.'


class EmailDeliveryFailed(ExternalServiceError):
    message = 'Failed to send the OTP email. Please try again.'
