import httpx
import pytest

from academy.models import PaymentStatus
from academy.services.exceptions import PaymentGatewayError, UnmappedStatusError
from academy.services.gateway import PaymentGateway, format_payment_method, map_gateway_status


def test_status_mapping():
    assert map_gateway_status("completed") == PaymentStatus.PAID
    assert map_gateway_status("PENDING") == PaymentStatus.PENDING
    with pytest.raises(UnmappedStatusError):
        map_gateway_status("canceled")


def test_payment_method_labels():
    assert format_payment_method("bni_va") == "BNI Virtual Account"
    assert format_payment_method("crypto") == "crypto"


def test_create_transaction(gateway, gateway_stub):
    session = gateway.create_transaction("INV-20261018-AB12", 250000, expiry_minutes=60)

    assert session.order_id == "INV-20261018-AB12"
    assert session.token == "QR-INV-20261018-AB12"
    assert session.redirect_url.startswith(
        "https://gateway.test/pay/academy-test/250000?order_id=INV-20261018-AB12"
    )
    assert gateway_stub.requests[0]["json"]["api_key"] == "test-api-key"


def test_transaction_detail():
    def handler(request):
        assert request.url.params["order_id"] == "INV-1"
        return httpx.Response(
            200,
            json={
                "transaction": {
                    "order_id": "INV-1",
                    "status": "completed",
                    "completed_at": "2026-10-18T10:00:00+00:00",
                }
            },
        )

    gateway = PaymentGateway(
        project="academy-test",
        api_key="key",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    detail = gateway.get_transaction("INV-1", 1000)
    assert detail.status == "completed"
    assert detail.completed_at is not None


def test_unconfigured_gateway_refuses_requests():
    gateway = PaymentGateway(project="", api_key="")
    with pytest.raises(PaymentGatewayError):
        gateway.create_transaction("INV-1", 1000)


def test_network_errors_become_gateway_errors():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    gateway = PaymentGateway(
        project="academy-test",
        api_key="key",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    with pytest.raises(PaymentGatewayError) as exc:
        gateway.create_transaction("INV-1", 1000)
    assert exc.value.status_code == 502


def test_verify_callback(gateway):
    assert gateway.verify_callback("academy-test", "INV-1", 1000)
    assert not gateway.verify_callback("other", "INV-1", 1000)
    assert not gateway.verify_callback("academy-test", "INV-1", 0)
