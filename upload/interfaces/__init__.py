"""
Interfaces Package

Abstract interfaces for the upload pipeline's collaborators.
"""

from upload.interfaces.broker_interface import (
    BrokerRejectedError,
    SignedUpload,
    SignedUrlBrokerInterface,
)
from upload.interfaces.compressor_interface import (
    CompressionError,
    CompressorInterface,
)
from upload.interfaces.errors import AuthRequiredError, InvalidFileError, UploadError
from upload.interfaces.finalizer_interface import FinalizeError, FinalizerInterface
from upload.interfaces.quota_interface import QuotaOracleInterface, QuotaUsage
from upload.interfaces.session_interface import SessionInterface
from upload.interfaces.transport_interface import (
    CancelToken,
    TransportAck,
    TransportError,
    TransportInterface,
)

__all__ = [
    "AuthRequiredError",
    "BrokerRejectedError",
    "CancelToken",
    "CompressionError",
    "CompressorInterface",
    "FinalizeError",
    "FinalizerInterface",
    "InvalidFileError",
    "QuotaOracleInterface",
    "QuotaUsage",
    "SessionInterface",
    "SignedUpload",
    "SignedUrlBrokerInterface",
    "TransportAck",
    "TransportError",
    "TransportInterface",
    "UploadError",
]
