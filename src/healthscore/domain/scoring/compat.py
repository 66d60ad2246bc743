"""Compatibility shim for decryption denials that arrive disguised.

Some wallet stacks report a refused user decryption as a failed ENS name
lookup from the identity layer instead of an explicit error from the
decryption service. Only that exact error shape is reclassified here.
"""

DISGUISED_DENIAL_CODE = "UNSUPPORTED_OPERATION"
DISGUISED_DENIAL_OPERATION = "getEnsAddress"


def is_disguised_unauthorized(error: BaseException) -> bool:
    return (
        getattr(error, "code", None) == DISGUISED_DENIAL_CODE
        and getattr(error, "operation", None) == DISGUISED_DENIAL_OPERATION
    )
