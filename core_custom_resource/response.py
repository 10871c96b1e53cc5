"""
CloudFormation Custom Resource Response Module.

This module models the response document that a custom resource provider sends
back to CloudFormation and performs the upload of that document to the
pre-signed ResponseURL found in the request.

**CloudFormation Custom Resource Protocol:**
    When CloudFormation invokes a custom resource, it expects an HTTP PUT to a
    pre-signed URL with a JSON body containing the operation status and any
    output data. The URL is already signed, so no credentials are sent.

**Response Flow:**
    1. CloudFormation sends a custom resource event to Lambda
    2. The event is decoded into a :class:`~core_custom_resource.event.CustomResourceEvent`
    3. The provider calls ``respond_with_success()``, ``respond_with_failure()``
       or ``respond_with()`` on the payload to obtain a :class:`CustomResourceResponse`
    4. The provider optionally calls ``set_no_echo()`` / ``add_data()``
    5. ``finish()`` sends the HTTP PUT to CloudFormation's ResponseURL
"""

from enum import Enum
from http.client import HTTPException
from typing import Dict, Optional
from urllib.request import build_opener, HTTPHandler, Request
from urllib.error import HTTPError
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_pascal

import core_logging as log

import core_framework as util

from .exceptions import ResponseTransportError, redact_url

JSON_CONTENT_TYPE = "application/json"
DEFAULT_SUCCESS_REASON = "Success"

# Schemes a ResponseURL may use
ALLOWED_URL_SCHEMES = ("http", "https")


class ResponseType(str, Enum):
    """Status reported to CloudFormation, serialized in uppercase."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"

    def __str__(self) -> str:
        return self.value


class CustomResourceResponse(BaseModel):
    """
    Response document sent back to CloudFormation once the custom resource
    operation is complete.

    Instances are created by the ``respond_with_*`` methods of
    :class:`~core_custom_resource.event.CloudFormationPayload`, enriched with the
    fluent :meth:`set_no_echo` and :meth:`add_data` methods and delivered with
    :meth:`finish`.

    **Response Body Structure:**

        .. code-block:: json

            {
                "Status": "SUCCESS|FAILED",
                "Reason": "Human readable reason",
                "PhysicalResourceId": "550e8400-e29b-41d4-a716-446655440000",
                "StackId": "arn:aws:cloudformation:region:account:stack/name/id",
                "RequestId": "unique-request-id",
                "LogicalResourceId": "MyCustomResource",
                "NoEcho": false,
                "Data": {
                    "OutputKey1": "OutputValue1"
                }
            }

        ``NoEcho`` and ``Data`` are omitted until they are set. The ResponseURL is
        held by the builder but is never part of the body.

    **Example Usage:**
        .. code-block:: python

            payload.respond_with_success("Bucket created") \\
                .add_data("BucketName", "my-bucket") \\
                .set_no_echo(False) \\
                .finish()
    """

    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)

    status: ResponseType
    reason: str
    physical_resource_id: UUID
    stack_id: str
    request_id: str
    logical_resource_id: str
    no_echo: Optional[bool] = None
    data: Optional[Dict[str, str]] = None
    response_url: str = Field(alias="ResponseURL", exclude=True, repr=False)

    def set_no_echo(self, value: bool) -> "CustomResourceResponse":
        """
        Indicate whether to mask the output of the custom resource when retrieved
        with ``Fn::GetAtt``.

        If set to true, all returned values are masked with asterisks (*****),
        except for those stored in the Metadata section of the template. The last
        value written wins.

        :param value: Whether CloudFormation should mask the outputs
        :type value: bool

        :returns: This response, for chaining
        :rtype: CustomResourceResponse
        """
        self.no_echo = value
        return self

    def add_data(self, key: str, value: str) -> "CustomResourceResponse":
        """
        Write a name-value pair to the Data section of the response.

        The values can be read by name in the template with ``Fn::GetAtt``.
        Writing an existing key replaces its value.

        :param key: Output attribute name
        :type key: str
        :param value: Output attribute value
        :type value: str

        :returns: This response, for chaining
        :rtype: CustomResourceResponse
        """
        if self.data is None:
            self.data = {}
        self.data[key] = value
        return self

    def to_dict(self) -> dict:
        """Return the response body as CloudFormation expects it."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        """Return the response body rendered as JSON."""
        return util.to_json(self.to_dict())

    def finish(self, timeout: Optional[float] = None, content_type: str = JSON_CONTENT_TYPE) -> None:
        """
        Send this response to the ResponseURL of the custom resource.

        This completes the CloudFormation operation (create/update/delete). The
        response must not be used again afterwards.

        :param timeout: Socket timeout in seconds. ``None`` leaves the socket default in place
        :type timeout: Optional[float]
        :param content_type: Value of the Content-Type header. Use ``""`` when the URL was
            signed without a content type
        :type content_type: str

        :returns: None
        :rtype: None

        :raises ResponseTransportError: If the request fails or CloudFormation answers with a non-2xx status
        """
        response_body_json = self.to_json()

        log.info(
            "Sending CloudFormation response",
            details={
                "response_url": redact_url(self.response_url),
                "status": str(self.status),
                "physical_resource_id": str(self.physical_resource_id),
                "logical_resource_id": self.logical_resource_id,
                "data_keys": sorted(self.data) if self.data else [],
            },
        )

        try:
            status_code = _send_http_response(self.response_url, response_body_json, content_type, timeout)
        except ResponseTransportError as transport_error:
            log.error(
                "Failed to send response to CloudFormation",
                details={
                    "error": str(transport_error),
                    "error_type": type(transport_error.cause).__name__,
                    "response_url": transport_error.response_url,
                    "http_status": transport_error.status,
                    "status": str(self.status),
                },
            )
            raise

        log.info(
            "CloudFormation response sent successfully",
            details={
                "status": str(self.status),
                "physical_resource_id": str(self.physical_resource_id),
                "http_status": status_code,
            },
        )


def _send_http_response(
    response_url: str,
    response_body: str,
    content_type: str = JSON_CONTENT_TYPE,
    timeout: Optional[float] = None,
) -> int:
    """
    Send the actual HTTP PUT request to CloudFormation's ResponseURL.

    :param response_url: CloudFormation's pre-signed ResponseURL
    :type response_url: str
    :param response_body: JSON response body to send
    :type response_body: str
    :param content_type: Content-Type header value
    :type content_type: str
    :param timeout: Optional socket timeout in seconds
    :type timeout: Optional[float]

    :returns: The HTTP status code returned by the server
    :rtype: int

    :raises ResponseTransportError: On any network failure or non-2xx status

    **HTTP Request Details:**
        - Method: PUT
        - Body: JSON response data, UTF-8 encoded
        - Content-Length: computed by urllib from the encoded body
        - No authentication headers, the URL is pre-signed
    """
    opener = build_opener(HTTPHandler)

    try:
        request = Request(
            response_url,
            data=response_body.encode(encoding="utf-8", errors="strict"),
            method="PUT",
        )
    except ValueError as url_error:
        raise ResponseTransportError(
            f"Invalid response URL: {url_error}", cause=url_error, response_url=response_url
        ) from url_error

    if request.type not in ALLOWED_URL_SCHEMES:
        raise ResponseTransportError(
            f"Invalid response URL: unsupported scheme '{request.type}'", response_url=response_url
        )

    request.add_header("Content-Type", content_type)

    open_args = {} if timeout is None else {"timeout": timeout}

    try:
        with opener.open(request, **open_args) as response:
            status_code = response.getcode()
            log.debug(
                "HTTP response received from CloudFormation",
                details={
                    "status_code": status_code,
                    "status_message": response.msg,
                    "response_url": redact_url(response_url),
                },
            )
    except HTTPError as http_error:
        http_error.close()
        raise ResponseTransportError(
            f"CloudFormation rejected the response with HTTP {http_error.code}",
            cause=http_error,
            response_url=response_url,
            status=http_error.code,
        ) from http_error
    except (OSError, HTTPException, ValueError) as network_error:
        raise ResponseTransportError(
            f"Failed to send response to CloudFormation: {network_error}",
            cause=network_error,
            response_url=response_url,
        ) from network_error

    if status_code is None or not 200 <= status_code < 300:
        raise ResponseTransportError(
            f"CloudFormation rejected the response with HTTP {status_code}",
            response_url=response_url,
            status=status_code,
        )

    return status_code


__all__ = ["ResponseType", "CustomResourceResponse", "JSON_CONTENT_TYPE", "DEFAULT_SUCCESS_REASON"]
