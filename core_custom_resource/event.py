"""
CloudFormation Custom Resource Event Module.

This module decodes the request that CloudFormation sends to a custom resource
provider. The payload is the same for every custom resource except for the
``ResourceProperties`` section, so that section is generic and decoded into a
type chosen by the provider.

**CloudFormation Event Structure:**

    .. code-block:: json

        {
            "RequestType": "Delete",
            "RequestId": "unique id for this delete request",
            "ResponseURL": "pre-signed-url-for-delete-response",
            "ResourceType": "Custom::MyCustomResourceType",
            "LogicalResourceId": "name of resource in template",
            "StackId": "arn:aws:cloudformation:us-east-2:namespace:stack/stack-name/guid",
            "PhysicalResourceId": "550e8400-e29b-41d4-a716-446655440000",
            "ResourceProperties": {
                "key1": "string",
                "key2": ["list"],
                "key3": {"key4": "map"}
            }
        }

**Example Usage:**
    .. code-block:: python

        class MyProperties(BaseModel):
            value_one: int
            value_two: int

        event = CustomResourceEvent.from_event(raw_event, MyProperties)

        if event.is_create:
            props = event.payload.resource_properties
            print(props.value_one + props.value_two)

        event.payload.respond_with_success("all done").finish()
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generic, Optional, TypeVar, Union
from uuid import UUID, uuid4
import json

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_pascal

import core_logging as log

from .exceptions import EventDecodeError
from .response import CustomResourceResponse, ResponseType, DEFAULT_SUCCESS_REASON

PropertiesT = TypeVar("PropertiesT")
ResultT = TypeVar("ResultT")

RawEvent = Union[bytes, bytearray, str, Dict[str, Any]]


class RequestType(str, Enum):
    """Lifecycle action requested by CloudFormation."""

    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"

    def __str__(self) -> str:
        return self.value


class CloudFormationPayload(BaseModel, Generic[PropertiesT]):
    """
    The data CloudFormation sends with every custom resource request, apart
    from the request type.

    Combining ``stack_id`` with ``request_id`` uniquely identifies a request on
    a particular custom resource. ``physical_resource_id`` is never sent with
    Create and always sent with Update and Delete.

    A payload is consumed by one of the ``respond_with*`` methods. Do not use
    it again once a response has been built from it.
    """

    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True, extra="ignore")

    request_id: str
    response_url: str = Field(alias="ResponseURL")
    resource_type: str
    logical_resource_id: str
    stack_id: str
    physical_resource_id: Optional[UUID] = None
    resource_properties: PropertiesT
    old_resource_properties: Optional[PropertiesT] = None
    service_token: Optional[str] = None

    def respond_with_success(self, reason: str) -> CustomResourceResponse:
        """
        Create a response that indicates success.

        :param reason: Human readable reason reported to CloudFormation
        :type reason: str

        :returns: A response builder with status ``SUCCESS``
        :rtype: CustomResourceResponse
        """
        return self._respond(ResponseType.SUCCESS, reason)

    def respond_with_failure(self, reason: str) -> CustomResourceResponse:
        """
        Create a response that indicates a failure.

        :param reason: Human readable reason reported to CloudFormation
        :type reason: str

        :returns: A response builder with status ``FAILED``
        :rtype: CustomResourceResponse
        """
        return self._respond(ResponseType.FAILED, reason)

    def respond_with(self, result: Any) -> CustomResourceResponse:
        """
        Create a response from the outcome of the provider's operation.

        An exception instance produces a failure whose reason is the text of the
        exception. Any other value produces a success with reason ``Success``.

        :param result: The operation's return value, or the exception it raised
        :type result: Any

        :returns: A response builder
        :rtype: CustomResourceResponse

        **Example:**
            .. code-block:: python

                try:
                    result = create_bucket(props)
                except ClientError as e:
                    result = e

                payload.respond_with(result).finish()
        """
        if isinstance(result, BaseException):
            return self.respond_with_failure(str(result))
        return self.respond_with_success(DEFAULT_SUCCESS_REASON)

    def _respond(self, status: ResponseType, reason: str) -> CustomResourceResponse:
        physical_resource_id = self.physical_resource_id
        if physical_resource_id is None:
            physical_resource_id = uuid4()
            log.debug(
                "Generated physical resource id",
                details={"logical_resource_id": self.logical_resource_id, "physical_resource_id": str(physical_resource_id)},
            )

        return CustomResourceResponse(
            status=status,
            reason=reason,
            physical_resource_id=physical_resource_id,
            stack_id=self.stack_id,
            request_id=self.request_id,
            logical_resource_id=self.logical_resource_id,
            response_url=self.response_url,
        )


@dataclass(frozen=True)
class CustomResourceEvent(Generic[PropertiesT]):
    """
    A decoded CloudFormation custom resource request: the request type plus
    the payload it carries.

    Use :meth:`from_event` to decode the event delivered by the Lambda runtime
    and :meth:`match` (or the ``is_*`` properties) to act on the request type.
    """

    request_type: RequestType
    payload: CloudFormationPayload[PropertiesT]

    @classmethod
    def from_event(cls, event: RawEvent, properties_type: Any = dict) -> "CustomResourceEvent":
        """
        Decode a CloudFormation custom resource event.

        :param event: The event as JSON text or bytes, or as the dict delivered by the Lambda runtime
        :type event: Union[bytes, bytearray, str, Dict[str, Any]]
        :param properties_type: Type the ``ResourceProperties`` section is decoded into.
            Any type pydantic can validate, e.g. a ``BaseModel`` subclass or ``dict``
        :type properties_type: Any

        :returns: The decoded event
        :rtype: CustomResourceEvent

        :raises EventDecodeError: If the event is malformed, lacks a required field, has an
            unsupported ``RequestType``, an invalid ``PhysicalResourceId`` or properties that
            do not match ``properties_type``
        """
        data = _load_event(event)

        if "RequestType" not in data:
            raise EventDecodeError("Event missing required field 'RequestType'")

        try:
            request_type = RequestType(data["RequestType"])
        except ValueError:
            supported = ", ".join(t.value for t in RequestType)
            raise EventDecodeError(
                f"Unsupported request type '{data['RequestType']}'. Supported types: {supported}"
            ) from None

        try:
            payload = CloudFormationPayload[properties_type].model_validate(data)
        except ValidationError as validation_error:
            errors = validation_error.errors(include_url=False, include_context=False)
            raise EventDecodeError(_describe_errors(errors), errors=errors) from validation_error

        log.debug(
            "CloudFormation event decoded",
            details={
                "request_type": request_type.value,
                "resource_type": payload.resource_type,
                "logical_resource_id": payload.logical_resource_id,
            },
        )

        return cls(request_type=request_type, payload=payload)

    @property
    def is_create(self) -> bool:
        return self.request_type is RequestType.CREATE

    @property
    def is_update(self) -> bool:
        return self.request_type is RequestType.UPDATE

    @property
    def is_delete(self) -> bool:
        return self.request_type is RequestType.DELETE

    def match(
        self,
        create: Callable[[CloudFormationPayload[PropertiesT]], ResultT],
        update: Callable[[CloudFormationPayload[PropertiesT]], ResultT],
        delete: Callable[[CloudFormationPayload[PropertiesT]], ResultT],
    ) -> ResultT:
        """
        Call the function for this event's request type with the payload.

        :returns: Whatever the selected function returns

        **Example:**
            .. code-block:: python

                response = event.match(
                    create=lambda p: p.respond_with_success("created"),
                    update=lambda p: p.respond_with_success("updated"),
                    delete=lambda p: p.respond_with_success("deleted"),
                )
        """
        cases = {
            RequestType.CREATE: create,
            RequestType.UPDATE: update,
            RequestType.DELETE: delete,
        }
        return cases[self.request_type](self.payload)


def _load_event(event: RawEvent) -> Dict[str, Any]:
    if isinstance(event, (bytes, bytearray, str)):
        try:
            event = json.loads(event)
        except ValueError as json_error:
            raise EventDecodeError(f"Event is not valid JSON: {json_error}") from json_error

    if not isinstance(event, dict):
        raise EventDecodeError("Event must be a JSON object")

    return event


def _describe_errors(errors: list) -> str:
    """Render pydantic errors as ``Field.path: message`` pairs."""
    problems = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ())) or "<event>"
        problems.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "Invalid CloudFormation event: " + "; ".join(problems)


__all__ = ["RequestType", "CloudFormationPayload", "CustomResourceEvent"]
