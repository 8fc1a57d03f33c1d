class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class RemoteServiceError(AppError):
    """A call to the billing REST API failed.

    ``str(err)`` is the message reported by the server when it sent one.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PartialSaveError(RemoteServiceError):
    """The bill was stored but a later step of the same save failed."""

    def __init__(self, message: str, status_code: int | None = None, bill_id: str | None = None, bill_no: str | None = None):
        super().__init__(message, status_code)
        self.bill_id = bill_id
        self.bill_no = bill_no


class CameraError(AppError):
    pass


class DeviceNotFoundError(CameraError):
    pass
