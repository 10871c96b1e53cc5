"""
Helpers for writing AWS CloudFormation custom resource providers as Lambda functions.

The package decodes the custom resource request CloudFormation sends, builds the
response document and uploads it to the pre-signed ResponseURL.

.. code-block:: python

    from core_custom_resource import CustomResourceEvent

    def handler(event, context):
        event = CustomResourceEvent.from_event(event, MyParameters)
        event.payload.respond_with_success("all done").finish()
"""

from .event import CloudFormationPayload, CustomResourceEvent, RequestType
from .exceptions import CustomResourceError, EventDecodeError, ResponseTransportError
from .handler import CustomResourceHandler
from .response import CustomResourceResponse, ResponseType, JSON_CONTENT_TYPE, DEFAULT_SUCCESS_REASON

__all__ = [
    "CloudFormationPayload",
    "CustomResourceEvent",
    "RequestType",
    "CustomResourceResponse",
    "ResponseType",
    "CustomResourceHandler",
    "CustomResourceError",
    "EventDecodeError",
    "ResponseTransportError",
    "JSON_CONTENT_TYPE",
    "DEFAULT_SUCCESS_REASON",
]
