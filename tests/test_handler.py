import json
from typing import List

import pytest
from pydantic import BaseModel

from core_custom_resource import (
    CustomResourceHandler,
    EventDecodeError,
    ResponseTransportError,
)


class PayloadData(BaseModel):
    a: str
    b: List[str]


@pytest.fixture
def handler():
    handler = CustomResourceHandler(properties_type=PayloadData, timeout=5)

    @handler.on_create
    def create(payload, context):
        return payload.respond_with_success("created").add_data("Value", payload.resource_properties.a)

    @handler.on_update
    def update(payload, context):
        return None

    @handler.on_delete
    def delete(payload, context):
        raise RuntimeError("resource is still in use")

    return handler


def test_handler_create(handler, create_event, context, response_server):

    create_event["ResponseURL"] = response_server.url

    response = handler(create_event, context)

    body = response_server.last_body()
    assert json.loads(json.dumps(response)) == body
    assert body["Status"] == "SUCCESS"
    assert body["Reason"] == "created"
    assert body["Data"] == {"Value": "string"}
    assert response["PhysicalResourceId"] == body["PhysicalResourceId"]


def test_handler_action_returning_none(handler, update_event, context, response_server):

    update_event["ResponseURL"] = response_server.url

    handler(update_event, context)

    body = response_server.last_body()
    assert body["Status"] == "SUCCESS"
    assert body["Reason"] == "Success"
    assert body["PhysicalResourceId"] == "550e8400-e29b-41d4-a716-446655440000"


def test_handler_action_exception(handler, delete_event, context, response_server):

    delete_event["ResponseURL"] = response_server.url

    handler(delete_event, context)

    body = response_server.last_body()
    assert body["Status"] == "FAILED"
    assert body["Reason"] == "resource is still in use"


def test_handler_missing_action(create_event, context, response_server):

    handler = CustomResourceHandler(actions={"Delete": lambda payload, context: None})
    create_event["ResponseURL"] = response_server.url

    handler(create_event, context)

    body = response_server.last_body()
    assert body["Status"] == "FAILED"
    assert "No action registered for 'Create'" in body["Reason"]


def test_handler_invalid_properties(handler, create_event, context, response_server):

    create_event["ResponseURL"] = response_server.url
    create_event["ResourceProperties"] = {"a": "string"}

    handler(create_event, context)

    body = response_server.last_body()
    assert body["Status"] == "FAILED"
    assert body["Reason"].startswith("Validation error:")
    assert "ResourceProperties.b" in body["Reason"]


def test_handler_unanswerable_event(handler, context):

    with pytest.raises(EventDecodeError):
        handler({"RequestType": "Create"}, context)


def test_handler_transport_error(handler, create_event, context, response_server):

    create_event["ResponseURL"] = response_server.url
    response_server.status_code = 500

    with pytest.raises(ResponseTransportError):
        handler(create_event, context)


def test_register_rejects_unknown_request_type():

    with pytest.raises(ValueError):
        CustomResourceHandler().on("Replace")(lambda payload, context: None)


def test_handler_action_returning_other_value(create_event, context, response_server):

    handler = CustomResourceHandler(actions={"Create": lambda payload, context: {"BucketName": "x"}})
    create_event["ResponseURL"] = response_server.url

    result = handler(create_event, context)

    body = response_server.last_body()
    assert len(response_server.requests) == 1
    assert body["Status"] == "FAILED"
    assert "returned dict" in body["Reason"]
    assert result["Status"] == "FAILED"


def test_handler_invalid_json_text_event(handler, create_event, context, response_server):

    create_event["ResponseURL"] = response_server.url
    create_event["ResourceProperties"] = {"a": "string"}

    handler(json.dumps(create_event), context)

    body = response_server.last_body()
    assert body["Status"] == "FAILED"
    assert body["Reason"].startswith("Validation error:")
    assert body["RequestId"] == "unique id for this create request"
