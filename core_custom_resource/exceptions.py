"""
Exceptions raised by the core-custom-resource package.

**Error Kinds:**
    - :class:`EventDecodeError`: the inbound CloudFormation event could not be decoded
    - :class:`ResponseTransportError`: the response document could not be uploaded

Failures of the provider's own logic are not modelled here. They are transcribed
into ``FAILED`` responses with :meth:`CloudFormationPayload.respond_with`.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit, urlunsplit


class CustomResourceError(Exception):
    """Base class for all errors raised by this package."""


class EventDecodeError(CustomResourceError, ValueError):
    """
    The inbound event is not a valid CloudFormation custom resource request.

    :param message: Description naming the offending field or value
    :type message: str
    :param errors: Validation errors reported by pydantic, if any
    :type errors: Optional[List[Dict[str, Any]]]
    """

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class ResponseTransportError(CustomResourceError):
    """
    The response document could not be delivered to the ResponseURL.

    Covers connection, DNS, TLS and timeout failures as well as any non-2xx
    HTTP status returned by the pre-signed URL.

    :param message: Description of the failure
    :type message: str
    :param cause: The underlying exception, if any
    :type cause: Optional[BaseException]
    :param response_url: The target URL (the query string is removed)
    :type response_url: str
    :param status: HTTP status code when the server answered
    :type status: Optional[int]
    """

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        response_url: str = "",
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.cause = cause
        self.response_url = redact_url(response_url)
        self.status = status


def redact_url(url: str) -> str:
    """
    Strip the query string and fragment from a pre-signed URL.

    The query string of a pre-signed URL carries temporary credentials, so it
    must never be logged or attached to an error.

    >>> redact_url("https://bucket.s3.amazonaws.com/key?X-Amz-Signature=abc")
    'https://bucket.s3.amazonaws.com/key'
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return "<invalid-url>"
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


__all__ = ["CustomResourceError", "EventDecodeError", "ResponseTransportError", "redact_url"]
