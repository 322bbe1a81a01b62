from fastapi import status


class VoucherError(Exception):
    """A voucher apply attempt was rejected. Message is safe to show to the shopper."""
    error = "voucher_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class VoucherInvalidInputError(VoucherError):
    error = "invalid_input"
    status_code = status.HTTP_400_BAD_REQUEST


class VoucherNotFoundError(VoucherError):
    error = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class VoucherIneligibleError(VoucherError):
    error = "ineligible"
    status_code = status.HTTP_400_BAD_REQUEST


class VoucherExhaustedError(VoucherError):
    error = "exhausted"
    status_code = status.HTTP_409_CONFLICT
