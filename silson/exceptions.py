"""
Application exceptions.

Every business error derives from BaseAppException and carries:
- type:        error family (validation_error / not_found / error)
- code:        machine readable code (DOMAIN_VIOLATION, WORKSHEET_NOT_FOUND, ...)
- message:     human readable text
- detail:      optional extra payload (dict / list / None)
- http_status: status code used by the API exception handler

Services only raise; silson.main renders them into a uniform JSON body.
"""


class BaseAppException(Exception):
    """Base class of all application errors."""

    type = 'error'
    code = 'UNKNOWN_ERROR'
    http_status = 500

    def __init__(self, message, code=None, detail=None, http_status=None):
        self.message = message
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status
        self.detail = detail
        super().__init__(message)


class DomainViolation(BaseAppException):
    """A cost or context value outside the recognised domain reached a rule."""

    type = 'validation_error'
    code = 'DOMAIN_VIOLATION'
    http_status = 422


class ImportFormatError(BaseAppException):
    """The uploaded spreadsheet could not be read at all."""

    type = 'validation_error'
    code = 'IMPORT_FORMAT_ERROR'
    http_status = 400


class EmptyBatch(BaseAppException):
    type = 'validation_error'
    code = 'EMPTY_BATCH'
    http_status = 400


class WorksheetNotFound(BaseAppException):
    type = 'not_found'
    code = 'WORKSHEET_NOT_FOUND'
    http_status = 404


class ReceiptNotFound(BaseAppException):
    type = 'not_found'
    code = 'RECEIPT_NOT_FOUND'
    http_status = 404
