from __future__ import annotations


class FormCraftError(Exception):
    """Base class for errors raised by the service layer."""


class FormServiceError(FormCraftError):
    pass


class FormNotFoundError(FormServiceError):
    pass


class ResponseServiceError(FormCraftError):
    pass


class UploadRejectedError(FormCraftError):
    pass
