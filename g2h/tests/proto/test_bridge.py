"""Tests for the request-time HTTP/JSON bridge."""

import asyncio
import json

import grpc
import pytest

from g2h.proto.bridge import (
    Bridge,
    HttpRequest,
    Route,
    RpcCallError,
    RpcReply,
    error_response,
)
from g2h.proto.codec import CodecRegistry, FieldCodec, FieldKind

SAY_HELLO = "/hello_world.Greeter/SayHello"
CONFLICTS = "/hello_world.EnumTestService/TestEnumConflicts"
PROCESS_PAYMENT = "/hello_world.PaymentConnector/ProcessPayment"
ECHO = "/pkg.Echo/Echo"


class Greeter:
    def SayHello(self, request, metadata):
        greeting = {0: "Good day", 1: "Hey", 2: "Hi"}[request["greeting_type"]]
        return {"message": f"{greeting}, {request['name']}", "status": 0}


class FakeRpcError(grpc.RpcError):
    def code(self):
        return grpc.StatusCode.NOT_FOUND

    def details(self):
        return "no such order"


@pytest.fixture
def bridge(result):
    bridge = Bridge(result.routes)
    bridge.bind_servicer("hello_world.Greeter", Greeter())
    return bridge


@pytest.fixture
def echo_bridge():
    registry = CodecRegistry()
    blob = registry.add(
        "pkg.Blob",
        [
            FieldCodec("data", FieldKind.SCALAR, "bytes"),
            FieldCodec("ratio", FieldKind.SCALAR, "double"),
        ],
    )
    bridge = Bridge([Route(ECHO, "POST", "pkg.Echo", "Echo", blob, blob)])
    bridge.bind("pkg.Echo", "Echo", lambda request, metadata: request)
    return bridge


def post(path, body, headers=()):
    return HttpRequest(path=path, headers=list(headers), body=json.dumps(body).encode())


def describe_bridge():
    def dispatches_to_bound_handlers(expect, bridge):
        response = bridge.handle(post(SAY_HELLO, {"name": "Ada", "greeting_type": "CASUAL"}))
        expect(response.status) == 200
        expect(("content-type", "application/json") in response.headers) == True
        expect(response.json()) == {"message": "Hey, Ada", "status": "SUCCESS"}

    def echoes_conflicting_enums_through_their_own_tables(expect, bridge):
        seen = {}

        def handler(request, metadata):
            seen.update(request)
            return {
                "test_passed": True,
                "serialized_payment": str(request["payment_status"]),
                "auth_history_strings": [str(value) for value in request["auth_history"]],
            }

        bridge.bind("hello_world.EnumTestService", "TestEnumConflicts", handler)
        body = {
            "payment_status": "PENDING",
            "auth_status": "DISCOVER",
            "processing_status": 1,
            "auth_history": ["VERIFIED", "DISCOVER"],
        }
        response = bridge.handle(post(CONFLICTS, body))

        expect(response.status) == 200
        expect(seen["payment_status"]) == 1
        expect(seen["auth_status"]) == 1
        expect(seen["processing_status"]) == 1
        expect(seen["auth_history"]) == [0, 1]
        expect(response.json()["auth_history_strings"]) == ["0", "1"]

    def passes_metadata_both_ways(expect, bridge):
        seen = []

        def handler(request, metadata):
            seen.extend(metadata)
            return RpcReply({"transaction_id": "t1"}, metadata=[("x-txn", "t1")])

        bridge.bind("hello_world.PaymentConnector", "ProcessPayment", handler)
        response = bridge.handle(
            post(PROCESS_PAYMENT, {}, [("X-Merchant", "m1"), ("Content-Type", "json")])
        )

        expect(response.status) == 200
        expect(seen) == [("x-merchant", "m1")]
        expect(("x-txn", "t1") in response.headers) == True
        expect(response.json()["status"]) == "SUCCESS"

    def rejects_unknown_enum_names(expect, bridge):
        response = bridge.handle(post(SAY_HELLO, {"greeting_type": "RUDE"}))
        expect(response.status) == 400
        body = response.json()
        expect(body["status"]) == "INVALID_ARGUMENT"
        expect(body["code"]) == 3
        expect(body["field"]) == "greeting_type"

    def rejects_invalid_json(expect, bridge):
        response = bridge.handle(HttpRequest(path=SAY_HELLO, body=b"{not json"))
        expect(response.status) == 400
        expect(response.json()["status"]) == "INVALID_ARGUMENT"

    def treats_an_empty_body_as_an_empty_message(expect, bridge):
        response = bridge.handle(HttpRequest(path=SAY_HELLO))
        expect(response.status) == 200
        expect(response.json()["message"]) == "Good day, "

    def reports_unknown_routes(expect, bridge):
        response = bridge.handle(post("/hello_world.Greeter/SayGoodbye", {}))
        expect(response.status) == 404
        expect(response.json()["status"]) == "UNIMPLEMENTED"

    def rejects_other_verbs(expect, bridge):
        response = bridge.handle(HttpRequest(path=SAY_HELLO, method="GET"))
        expect(response.status) == 405
        expect(("allow", "POST") in response.headers) == True

    def reports_unbound_methods(expect, bridge):
        response = bridge.handle(post(CONFLICTS, {}))
        expect(response.status) == 501

    def maps_handler_errors(expect, bridge):
        def handler(request, metadata):
            raise RpcCallError(grpc.StatusCode.PERMISSION_DENIED, "not yours")

        bridge.bind("hello_world.PaymentConnector", "ProcessPayment", handler)
        response = bridge.handle(post(PROCESS_PAYMENT, {}))
        expect(response.status) == 403
        expect(response.json()) == {
            "code": 7,
            "status": "PERMISSION_DENIED",
            "message": "not yours",
        }

    def maps_grpc_errors(expect, bridge):
        def handler(request, metadata):
            raise FakeRpcError()

        bridge.bind("hello_world.PaymentConnector", "ProcessPayment", handler)
        response = bridge.handle(post(PROCESS_PAYMENT, {}))
        expect(response.status) == 404
        expect(response.json()["message"]) == "no such order"

    def hides_unexpected_failures_behind_internal(expect, bridge, caplog):
        def handler(request, metadata):
            raise ZeroDivisionError("division by zero")

        bridge.bind("hello_world.PaymentConnector", "ProcessPayment", handler)
        response = bridge.handle(post(PROCESS_PAYMENT, {}))
        expect(response.status) == 500
        expect(response.json()["status"]) == "INTERNAL"
        expect(f"Handler for {PROCESS_PAYMENT} failed" in caplog.text) == True

    def reports_unencodable_responses(expect, bridge):
        bridge.bind(
            "hello_world.PaymentConnector",
            "ProcessPayment",
            lambda request, metadata: {"status": "NOT_A_STATUS"},
        )
        response = bridge.handle(post(PROCESS_PAYMENT, {}))
        expect(response.status) == 500
        expect(response.json()["field"]) == "status"

    def reports_scalars_json_cannot_carry(expect, bridge):
        def handler(request, metadata):
            return {"message": {1, 2}}

        bridge.bind("hello_world.Greeter", "SayHello", handler)
        response = bridge.handle(post(SAY_HELLO, {}))
        expect(response.status) == 500
        expect(response.json()["status"]) == "INTERNAL"
        expect(response.json()["field"]) == "message"

    def rejects_binding_unknown_methods(expect, bridge):
        with pytest.raises(KeyError):
            bridge.bind("hello_world.Greeter", "SayGoodbye", lambda request, metadata: {})

    def requires_async_mode_for_async_handlers(expect, bridge):
        async def handler(request, metadata):
            return {}

        bridge.bind("hello_world.PaymentConnector", "ProcessPayment", handler)
        response = bridge.handle(post(PROCESS_PAYMENT, {}))
        expect(response.status) == 500


def describe_async_bridge():
    def awaits_async_handlers(expect, bridge):
        async def handler(request, metadata):
            await asyncio.sleep(0)
            return {"transaction_id": request["order_id"], "status": 24}

        bridge.bind("hello_world.PaymentConnector", "ProcessPayment", handler)
        request = post(PROCESS_PAYMENT, {"orderId": "o-1"})
        response = asyncio.run(bridge.handle(request, async_=True))
        expect(response.status) == 200
        expect(response.json()["transaction_id"]) == "o-1"
        expect(response.json()["status"]) == "NOT_FOUND_ERROR"

    def runs_sync_handlers_too(expect, bridge):
        response = asyncio.run(bridge.handle(post(SAY_HELLO, {"name": "Lin"}), async_=True))
        expect(response.json()["message"]) == "Good day, Lin"

    def serves_concurrent_requests(expect, bridge):
        async def handler(request, metadata):
            await asyncio.sleep(0)
            return {"transaction_id": request["order_id"]}

        bridge.bind("hello_world.PaymentConnector", "ProcessPayment", handler)

        async def run_all():
            requests = [post(PROCESS_PAYMENT, {"order_id": str(i)}) for i in range(5)]
            return await asyncio.gather(*(bridge.handle(r, async_=True) for r in requests))

        responses = asyncio.run(run_all())
        expect([r.json()["transaction_id"] for r in responses]) == ["0", "1", "2", "3", "4"]


def describe_scalar_fields():
    def echoes_bytes_fields(expect, echo_bridge):
        seen = {}

        def handler(request, metadata):
            seen.update(request)
            return request

        echo_bridge.bind("pkg.Echo", "Echo", handler)
        response = echo_bridge.handle(post(ECHO, {"data": "aGk="}))
        expect(response.status) == 200
        expect(seen["data"]) == b"hi"
        expect(response.json()["data"]) == "aGk="

    def defaults_missing_bytes_to_empty(expect, echo_bridge):
        seen = {}

        def handler(request, metadata):
            seen.update(request)
            return request

        echo_bridge.bind("pkg.Echo", "Echo", handler)
        response = echo_bridge.handle(post(ECHO, {}))
        expect(seen["data"]) == b""
        expect(response.json()["data"]) == ""

    def accepts_url_safe_unpadded_base64(expect, echo_bridge):
        response = echo_bridge.handle(post(ECHO, {"data": "-_8"}))
        expect(response.status) == 200
        expect(response.json()["data"]) == "+/8="

    def rejects_invalid_base64(expect, echo_bridge):
        response = echo_bridge.handle(post(ECHO, {"data": "a$b"}))
        expect(response.status) == 400
        expect(response.json()["field"]) == "data"

    def sends_non_finite_floats_as_strings(expect, echo_bridge):
        echo_bridge.bind("pkg.Echo", "Echo", lambda request, metadata: {"ratio": float("nan")})
        response = echo_bridge.handle(post(ECHO, {}))
        expect(response.status) == 200
        expect(response.json()["ratio"]) == "NaN"

    def reads_non_finite_floats_from_strings(expect, echo_bridge):
        response = echo_bridge.handle(post(ECHO, {"ratio": "-Infinity"}))
        expect(response.json()["ratio"]) == "-Infinity"


def describe_error_response():
    def builds_a_json_status_body(expect):
        response = error_response(grpc.StatusCode.NOT_FOUND, "gone", field="order_id")
        expect(response.status) == 404
        expect(response.json()) == {
            "code": 5,
            "status": "NOT_FOUND",
            "message": "gone",
            "field": "order_id",
        }

    def accepts_numeric_codes_and_status_overrides(expect):
        response = error_response(14, "later", http_status=502)
        expect(response.status) == 502
        expect(response.json()["status"]) == "UNAVAILABLE"
