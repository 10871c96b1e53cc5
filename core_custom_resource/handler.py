"""
Lambda handler helper for CloudFormation custom resource providers.

:class:`CustomResourceHandler` decodes the CloudFormation event, dispatches it
to the action registered for its request type and always answers CloudFormation,
either with the response returned by the action or with a ``FAILED`` response
describing what went wrong.

**Action Functions:**
    An action receives the decoded payload and the Lambda context. It may return
    a :class:`~core_custom_resource.response.CustomResourceResponse` built from
    the payload (to report a reason, data or NoEcho), or ``None`` to report a
    plain success. Any exception it raises becomes a ``FAILED`` response.

**Example Usage:**
    .. code-block:: python

        handler = CustomResourceHandler(properties_type=BucketProperties)

        @handler.on_create
        def create_bucket(payload, context):
            name = make_bucket(payload.resource_properties)
            return payload.respond_with_success("Bucket created").add_data("BucketName", name)

        @handler.on_delete
        def delete_bucket(payload, context):
            remove_bucket(payload.resource_properties)

    The ``handler`` object is then configured as the Lambda entry point.
"""

from typing import Any, Callable, Dict, Optional, Union
from uuid import UUID, uuid4
import json
import traceback

import core_logging as log

from .event import CloudFormationPayload, CustomResourceEvent, RequestType
from .exceptions import EventDecodeError, ResponseTransportError
from .response import CustomResourceResponse, ResponseType

ActionFunction = Callable[[CloudFormationPayload, Any], Optional[CustomResourceResponse]]
ActionMap = Dict[RequestType, ActionFunction]

# Fields needed to answer CloudFormation when the event itself cannot be decoded
REPLY_FIELDS = ("ResponseURL", "StackId", "RequestId", "LogicalResourceId")


class CustomResourceHandler:
    """
    Dispatch CloudFormation custom resource events to action functions.

    :param properties_type: Type the ``ResourceProperties`` section is decoded into
    :type properties_type: Any
    :param actions: Initial mapping of request type to action function
    :type actions: Optional[Dict[Union[RequestType, str], ActionFunction]]
    :param timeout: Socket timeout used when uploading the response
    :type timeout: Optional[float]
    """

    def __init__(
        self,
        properties_type: Any = dict,
        actions: Optional[Dict[Union[RequestType, str], ActionFunction]] = None,
        timeout: Optional[float] = None,
    ):
        self.properties_type = properties_type
        self.timeout = timeout
        self.actions: ActionMap = {}
        for request_type, action in (actions or {}).items():
            self.register(request_type, action)

    def register(self, request_type: Union[RequestType, str], action: ActionFunction) -> ActionFunction:
        """
        Register the action function for a request type.

        :raises ValueError: If ``request_type`` is not Create, Update or Delete
        """
        self.actions[RequestType(request_type)] = action
        return action

    def on(self, request_type: Union[RequestType, str]) -> Callable[[ActionFunction], ActionFunction]:
        """Decorator registering the action for ``request_type``."""

        def decorator(action: ActionFunction) -> ActionFunction:
            return self.register(request_type, action)

        return decorator

    def on_create(self, action: ActionFunction) -> ActionFunction:
        return self.register(RequestType.CREATE, action)

    def on_update(self, action: ActionFunction) -> ActionFunction:
        return self.register(RequestType.UPDATE, action)

    def on_delete(self, action: ActionFunction) -> ActionFunction:
        return self.register(RequestType.DELETE, action)

    def __call__(self, event: Any, context: Any) -> Dict[str, Any]:
        """
        Lambda entry point for the custom resource provider.

        :param event: CloudFormation custom resource event
        :type event: Any
        :param context: AWS Lambda context object
        :type context: Any

        :returns: The response body that was sent to CloudFormation, as a JSON-serializable dict
        :rtype: Dict[str, Any]

        :raises EventDecodeError: If the event cannot be decoded and carries no ResponseURL to report to
        :raises ResponseTransportError: If the response could not be uploaded

        **Request Flow:**
            1. Decode the event; undecodable events are answered with ``FAILED`` when possible
            2. Look up the action for the request type
            3. Execute the action and turn its outcome into a response
            4. Upload the response to the ResponseURL
        """
        log.info(
            "CloudFormation custom resource request received",
            details=_event_summary(event),
        )

        try:
            decoded = CustomResourceEvent.from_event(event, self.properties_type)
        except EventDecodeError as decode_error:
            log.error("Event validation failed", details={"error": str(decode_error)})
            response = _failure_from_raw_event(event, f"Validation error: {decode_error}")
            if response is None:
                raise
            return self._finish(response)

        response = self._dispatch(decoded, context)
        return self._finish(response)

    def _dispatch(self, event: CustomResourceEvent, context: Any) -> CustomResourceResponse:
        payload = event.payload
        action = self.actions.get(event.request_type)
        if action is None:
            available_actions = ", ".join(t.value for t in self.actions) or "none"
            error_message = f"No action registered for '{event.request_type}'. Available actions: {available_actions}"
            log.error(error_message, details={"resource_type": payload.resource_type})
            return payload.respond_with_failure(error_message)

        log.info(
            "Executing action",
            details={
                "request_type": event.request_type.value,
                "resource_type": payload.resource_type,
                "function_name": getattr(action, "__name__", repr(action)),
            },
        )

        try:
            response = action(payload, context)
        except Exception as action_error:
            log.error(
                "Action failed",
                details={
                    "error": str(action_error),
                    "error_type": type(action_error).__name__,
                    "traceback": traceback.format_exc(),
                    "request_type": event.request_type.value,
                    "logical_resource_id": payload.logical_resource_id,
                },
            )
            return payload.respond_with(action_error)

        if response is None:
            response = payload.respond_with(None)
        elif not isinstance(response, CustomResourceResponse):
            error_message = (
                f"Action {getattr(action, '__name__', repr(action))} returned {type(response).__name__}, "
                "expected a CustomResourceResponse or None"
            )
            log.error(error_message, details={"request_type": event.request_type.value})
            return payload.respond_with_failure(error_message)

        log.info("Action completed", details={"request_type": event.request_type.value, "status": str(response.status)})
        return response

    def _finish(self, response: CustomResourceResponse) -> Dict[str, Any]:
        try:
            response.finish(timeout=self.timeout)
        except ResponseTransportError:
            log.error(
                "CloudFormation was not notified, the stack operation will wait until it times out",
                details={"logical_resource_id": response.logical_resource_id},
            )
            raise
        return response.to_dict()


def _failure_from_raw_event(event: Any, reason: str) -> Optional[CustomResourceResponse]:
    """Build a FAILED response from an undecodable event, if it can be answered at all."""
    if isinstance(event, (bytes, bytearray, str)):
        try:
            event = json.loads(event)
        except ValueError:
            return None
    if not isinstance(event, dict):
        return None
    if not all(isinstance(event.get(field), str) for field in REPLY_FIELDS):
        return None

    try:
        physical_resource_id = UUID(str(event.get("PhysicalResourceId")))
    except ValueError:
        physical_resource_id = uuid4()

    return CustomResourceResponse(
        status=ResponseType.FAILED,
        reason=reason,
        physical_resource_id=physical_resource_id,
        stack_id=event["StackId"],
        request_id=event["RequestId"],
        logical_resource_id=event["LogicalResourceId"],
        response_url=event["ResponseURL"],
    )


def _event_summary(event: Any) -> Dict[str, Any]:
    if not isinstance(event, dict):
        return {"event_type": type(event).__name__}
    return {
        "request_type": event.get("RequestType", "Unknown"),
        "resource_type": event.get("ResourceType", "Unknown"),
        "logical_resource_id": event.get("LogicalResourceId", "Unknown"),
        "stack_id": event.get("StackId", "Unknown"),
    }


__all__ = ["CustomResourceHandler", "ActionFunction", "ActionMap"]
