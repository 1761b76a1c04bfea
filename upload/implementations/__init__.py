"""
Implementations Package

Concrete collaborator implementations: HTTP/FFmpeg for real use, mocks
for tests and credential-less runs.
"""

from upload.implementations.ffmpeg_compressor import FFmpegCompressor
from upload.implementations.http_backend import (
    BrokerApiClient,
    HttpBroker,
    HttpFinalizer,
    HttpQuotaOracle,
)
from upload.implementations.http_transport import HttpTransport
from upload.implementations.mock_backend import (
    MockBroker,
    MockFinalizer,
    MockQuotaOracle,
    MockSession,
)
from upload.implementations.mock_compressor import MockCompressor
from upload.implementations.mock_transport import MockTransport

__all__ = [
    "BrokerApiClient",
    "FFmpegCompressor",
    "HttpBroker",
    "HttpFinalizer",
    "HttpQuotaOracle",
    "HttpTransport",
    "MockBroker",
    "MockCompressor",
    "MockFinalizer",
    "MockQuotaOracle",
    "MockSession",
    "MockTransport",
]
