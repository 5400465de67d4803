from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from storefront.email_service import order_number, send_email, send_payment_success_email
from storefront.models import Payment
from storefront.services.notification_service import (
    PaymentNotificationService,
    build_notification_data,
    notify_payment_success,
)
from storefront.services.whatsapp_service import WhatsAppResult, WhatsAppService

NOW = datetime(2024, 5, 1, 10, 0, 0)


def created_data(**overrides):
    data = {
        "paymentId": "pay-1",
        "transactionId": "tx-1",
        "customerName": "Budi Santoso",
        "customerPhone": "6281234567890",
        "items": [{"type": "whatsapp_service", "name": "WhatsApp Pro", "duration": "month", "quantity": 1}],
        "amount": 154000,
        "paymentMethod": "BCA VA",
        "paymentCode": None,
        "paymentUrl": None,
        "qrAvailable": False,
        "expiresAt": NOW + timedelta(hours=2, minutes=30),
    }
    data.update(overrides)
    return data


class TestMessages:
    def test_created_message_with_virtual_account(self):
        message = PaymentNotificationService.build_payment_created_message(
            created_data(paymentCode="8801234567"), now=NOW
        )

        assert message.startswith("*NEW ORDER - GENFITY*")
        assert "Hello Budi Santoso!" in message
        assert "• WhatsApp Pro - Bulanan" in message
        assert "*Total: Rp 154.000*" in message
        assert "Virtual Account number: 8801234567" in message
        assert "⏰ Payment in 2h 30m" in message
        assert "https://genfity.test/payment/status/pay-1" in message

    def test_created_message_with_qris(self):
        message = PaymentNotificationService.build_payment_created_message(
            created_data(paymentMethod="QRIS ShopeePay", qrAvailable=True), now=NOW
        )

        assert "Method: QRIS ShopeePay (QRIS)" in message
        assert "Scan QRIS in your payment page." in message

    def test_created_message_with_retail_code(self):
        message = PaymentNotificationService.build_payment_created_message(
            created_data(paymentMethod="Indomaret", paymentCode="IDM123"), now=NOW
        )

        assert "Payment code: IDM123" in message
        assert "retail outlets" in message

    def test_created_message_with_link_only(self):
        message = PaymentNotificationService.build_payment_created_message(
            created_data(paymentMethod="OVO", paymentUrl="https://pay.test/abc"), now=NOW
        )

        assert "Click the payment link to continue." in message

    def test_yearly_item_and_quantity(self):
        message = PaymentNotificationService.build_payment_created_message(
            created_data(items=[{"type": "whatsapp_service", "name": "WhatsApp Pro", "duration": "year", "quantity": 2}]),
            now=NOW,
        )

        assert "• WhatsApp Pro (2x) - Tahunan" in message

    @pytest.mark.parametrize(
        "status, heading",
        [
            ("paid", "*PAYMENT SUCCESS - GENFITY*"),
            ("failed", "*PAYMENT FAILED - GENFITY*"),
            ("expired", "*PAYMENT EXPIRED - GENFITY*"),
            ("cancelled", "*PAYMENT CANCELLED - GENFITY*"),
        ],
    )
    def test_status_messages(self, status, heading):
        message = PaymentNotificationService.build_payment_status_message(status, "Budi", 1500000)

        assert message.startswith(heading)
        assert "Rp 1.500.000" in message

    def test_pending_status_is_not_announced(self):
        assert PaymentNotificationService.build_payment_status_message("pending", "Budi", 1000) is None


class TestSenders:
    @pytest.mark.asyncio
    async def test_success_notifications_on_both_channels(self):
        whatsapp = AsyncMock()
        whatsapp.send_system_message.return_value = WhatsAppResult(success=True)
        service = PaymentNotificationService(whatsapp=whatsapp)

        with patch(
            "storefront.services.notification_service.send_payment_success_email", AsyncMock()
        ) as send_email_mock:
            result = await service.send_payment_success_notifications(
                created_data(customerEmail="budi@example.com", subtotal=150000)
            )

        assert result == {"whatsapp_sent": True, "email_sent": True, "whatsapp_error": None, "email_error": None}
        whatsapp.send_system_message.assert_awaited_once()
        assert send_email_mock.await_args.kwargs["to"] == "budi@example.com"
        assert send_email_mock.await_args.kwargs["final_amount"] == 154000

    @pytest.mark.asyncio
    async def test_channel_failures_are_reported(self):
        whatsapp = AsyncMock()
        whatsapp.send_system_message.return_value = WhatsAppResult.failure("CONFIG_ERROR", "not configured")
        service = PaymentNotificationService(whatsapp=whatsapp)

        result = await service.send_payment_success_notifications(created_data(customerEmail="budi@example.com"))

        assert result["whatsapp_sent"] is False
        assert result["whatsapp_error"] == "not configured"
        assert result["email_sent"] is False
        assert result["email_error"] == "Email service not configured"

    @pytest.mark.asyncio
    async def test_failed_notifications(self):
        whatsapp = AsyncMock()
        whatsapp.send_system_message.return_value = WhatsAppResult(success=True)
        service = PaymentNotificationService(whatsapp=whatsapp)

        with patch(
            "storefront.services.notification_service.send_payment_failed_email", AsyncMock()
        ) as send_email_mock:
            result = await service.send_payment_failed_notifications(created_data(customerEmail="budi@example.com"))

        assert result["whatsapp_sent"] is True
        assert result["email_sent"] is True
        body = whatsapp.send_system_message.await_args.args[1]
        assert "*PAYMENT FAILED - GENFITY*" in body
        assert send_email_mock.await_args.kwargs["transaction_id"] == "tx-1"

    @pytest.mark.asyncio
    async def test_missing_phone(self):
        service = PaymentNotificationService(whatsapp=AsyncMock())

        sent = await service.send_payment_created_notification(created_data(customerPhone=None))

        assert sent is False
        service.whatsapp.send_system_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_whatsapp_exception_does_not_propagate(self):
        whatsapp = AsyncMock()
        whatsapp.send_system_message.side_effect = RuntimeError("boom")
        service = PaymentNotificationService(whatsapp=whatsapp)

        assert await service.send_payment_status_notification("628123", "expired", "Budi", 1000) is False

    @pytest.mark.asyncio
    async def test_unannounced_status_sends_nothing(self):
        service = PaymentNotificationService(whatsapp=AsyncMock())

        assert await service.send_payment_status_notification("628123", "pending", "Budi", 1000) is False
        service.whatsapp.send_system_message.assert_not_called()


@pytest.fixture
def paid_payment(db, customer, package, duitku_method, make_transaction):
    transaction = make_transaction(customer, package, status="success")
    payment = Payment(
        transaction_id=transaction.id,
        amount=154000,
        service_fee=4000,
        method="duitku_BC",
        status="paid",
        gateway_provider="duitku",
        gateway_response={"vaNumber": "8801234567"},
        payment_date=datetime.utcnow(),
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def test_notification_data_from_payment(db, paid_payment):
    data = build_notification_data(db, paid_payment)

    assert data["customerPhone"] == "6281234567890"
    assert data["customerEmail"] == "budi@example.com"
    assert data["paymentMethod"] == "BCA VA"
    assert data["paymentCode"] == "8801234567"
    assert data["serviceFeeAmount"] == 4000
    assert data["items"] == [
        {"type": "whatsapp_service", "name": "WhatsApp Pro", "duration": "month", "quantity": 1, "price": 150000}
    ]


@pytest.mark.asyncio
async def test_notify_payment_success_loads_payment(paid_payment):
    with patch(
        "storefront.services.notification_service.payment_notification_service.send_payment_success_notifications",
        AsyncMock(return_value={}),
    ) as send:
        await notify_payment_success(paid_payment.id)

    assert send.await_args.args[0]["paymentId"] == paid_payment.id


@pytest.mark.asyncio
async def test_notify_unknown_payment_is_ignored():
    with patch(
        "storefront.services.notification_service.payment_notification_service.send_payment_success_notifications",
        AsyncMock(),
    ) as send:
        await notify_payment_success("missing")

    send.assert_not_called()


class TestWhatsAppService:
    def service(self):
        return WhatsAppService(base_url="http://wa.test/", user_token="token")

    def test_failure_result_serializes(self):
        result = WhatsAppResult.failure("AUTH_ERROR", "Invalid token", status_code=401)

        assert result.model_dump() == {
            "success": False,
            "data": None,
            "error_type": "AUTH_ERROR",
            "message": "Invalid token",
            "status_code": 401,
        }

    @pytest.mark.asyncio
    async def test_unconfigured_service(self):
        result = await WhatsAppService(base_url="http://wa.test", user_token="").send_system_message("0812", "hi")

        assert result.success is False
        assert result.error_type == "CONFIG_ERROR"

    @pytest.mark.asyncio
    async def test_send_normalizes_phone(self):
        service = self.service()
        with patch.object(service, "_request", AsyncMock(return_value=WhatsAppResult(success=True))) as request:
            result = await service.send_system_message("0812-3456-7890", "hi")

        assert result.success is True
        request.assert_awaited_once_with("POST", "/chat/send/text", {"Phone": "6281234567890", "Body": "hi"})

    @pytest.mark.asyncio
    async def test_reconnects_dropped_session(self):
        service = self.service()
        responses = [
            WhatsAppResult.failure("SERVER_ERROR", "session not connected", status_code=500),
            WhatsAppResult(success=True, data={"data": {"connected": False, "loggedIn": True}}),
            WhatsAppResult(success=True),
            WhatsAppResult(success=True, data={"data": {"connected": True, "loggedIn": True}}),
            WhatsAppResult(success=True, data={"id": "msg-1"}),
        ]
        with patch.object(service, "_request", AsyncMock(side_effect=responses)) as request, patch(
            "storefront.services.whatsapp_service.asyncio.sleep", AsyncMock()
        ):
            result = await service.send_system_message("6281234567890", "hi")

        assert result.success is True
        assert result.data == {"id": "msg-1"}
        assert [c.args[1] for c in request.await_args_list] == [
            "/chat/send/text",
            "/session/status",
            "/session/connect",
            "/session/status",
            "/chat/send/text",
        ]

    @pytest.mark.asyncio
    async def test_connected_session_does_not_reconnect(self):
        service = self.service()
        failure = WhatsAppResult.failure("SERVER_ERROR", "bad number", status_code=500)
        responses = [failure, WhatsAppResult(success=True, data={"connected": True, "loggedIn": True})]
        with patch.object(service, "_request", AsyncMock(side_effect=responses)) as request:
            result = await service.send_system_message("6281234567890", "hi")

        assert result is failure
        assert request.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_reconnect(self):
        service = self.service()
        responses = [
            WhatsAppResult.failure("SERVER_ERROR", "not connected"),
            WhatsAppResult(success=True, data={"connected": False}),
            WhatsAppResult.failure("SERVER_ERROR", "cannot connect"),
        ]
        with patch.object(service, "_request", AsyncMock(side_effect=responses)):
            result = await service.send_system_message("6281234567890", "hi")

        assert result.success is False
        assert result.message == "WhatsApp session reconnection failed"


class TestEmail:
    def test_order_number(self):
        assert order_number("3f2a9c1e-0000-4000-8000-00ab12cd34ef") == "12CD34EF"

    @pytest.mark.asyncio
    async def test_send_requires_api_key(self):
        with pytest.raises(Exception, match="Email service not configured"):
            await send_email("budi@example.com", "Hello", "<mjml></mjml>")

    @pytest.mark.asyncio
    async def test_payment_success_email(self):
        with patch("storefront.email_service.RESEND_API_KEY", "re_test"), patch(
            "storefront.email_service.compile_mjml_to_html", return_value="<html></html>"
        ), patch("storefront.email_service.resend.Emails.send", return_value={"id": "email-1"}) as send:
            response = await send_payment_success_email(
                to="budi@example.com",
                customer_name="Budi",
                transaction_id="tx-0000-abcdef12",
                items=[{"type": "whatsapp_service", "name": "WhatsApp Pro", "duration": "year", "price": 1500000}],
                subtotal=1500000,
                discount_amount=50000,
                service_fee_amount=0,
                final_amount=1450000,
                payment_method_name="Transfer BCA",
                order_date=NOW,
                payment_date=NOW,
            )

        assert response == {"id": "email-1"}
        params = send.call_args.args[0]
        assert params["to"] == ["budi@example.com"]
        assert params["subject"] == "Payment Confirmation - Order #ABCDEF12"
        assert params["html"] == "<html></html>"
