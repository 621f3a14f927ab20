"""Hosted-checkout payment gateway client.

The gateway identifies a transaction by (project, order_id, amount) and
calls back ``POST /api/payments/webhook`` when the customer pays. It does not
sign callbacks, so a callback is only trusted once its project slug matches
ours and its order id and amount match a stored payment.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel

from academy.core.config import settings
from academy.models.finance import PaymentStatus
from academy.services.exceptions import PaymentGatewayError, UnmappedStatusError
from academy.utils.time import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

# Gateway status -> internal payment status. Anything else is surfaced as an
# UnmappedStatusError instead of being guessed.
STATUS_MAP = {
    "completed": PaymentStatus.PAID,
    "pending": PaymentStatus.PENDING,
}

PAYMENT_METHOD_LABELS = {
    "qris": "QRIS",
    "bni_va": "BNI Virtual Account",
    "bri_va": "BRI Virtual Account",
    "cimb_niaga_va": "CIMB Niaga Virtual Account",
    "sampoerna_va": "Sampoerna Virtual Account",
    "bnc_va": "BNC Virtual Account",
    "maybank_va": "Maybank Virtual Account",
    "permata_va": "Permata Virtual Account",
    "atm_bersama_va": "ATM Bersama Virtual Account",
    "artha_graha_va": "Artha Graha Virtual Account",
    "retail": "Retail Payment",
}


class CheckoutSession(BaseModel):
    order_id: str
    amount: int
    token: Optional[str] = None
    redirect_url: str
    payment_method: str
    expires_at: datetime


class TransactionDetail(BaseModel):
    order_id: str
    status: str
    completed_at: Optional[datetime] = None


def map_gateway_status(gateway_status: str) -> PaymentStatus:
    try:
        return STATUS_MAP[(gateway_status or "").lower()]
    except KeyError:
        raise UnmappedStatusError(gateway_status)


def format_payment_method(method: str) -> str:
    return PAYMENT_METHOD_LABELS.get(method, method)


class PaymentGateway:
    def __init__(
        self,
        base_url: str = None,
        project: str = None,
        api_key: str = None,
        payment_method: str = None,
        timeout: float = None,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = (base_url or settings.PAYMENT_GATEWAY_URL).rstrip("/")
        self.project = project if project is not None else settings.PAYMENT_GATEWAY_PROJECT
        self.api_key = api_key if api_key is not None else settings.PAYMENT_GATEWAY_API_KEY
        self.payment_method = payment_method or settings.PAYMENT_GATEWAY_METHOD
        self.timeout = timeout or settings.PAYMENT_GATEWAY_TIMEOUT
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.project and self.api_key)

    def _request(self, method: str, path: str, **kwargs) -> dict:
        if not self.is_configured():
            raise PaymentGatewayError("Payment gateway credentials not configured")

        url = f"{self.base_url}{path}"
        try:
            if self._client is not None:
                response = self._client.request(method, url, **kwargs)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Gateway %s %s returned %s: %s",
                method, path, e.response.status_code, e.response.text,
            )
            raise PaymentGatewayError(
                f"Payment gateway rejected the request ({e.response.status_code})"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Gateway %s %s failed: %s", method, path, e)
            raise PaymentGatewayError("Payment gateway unavailable") from e

    def payment_url(self, order_id: str, amount: int, return_url: Optional[str] = None) -> str:
        url = f"{self.base_url}/pay/{self.project}/{amount}?order_id={quote(order_id)}"
        if return_url:
            url += f"&redirect={quote(return_url, safe='')}"
        return url

    def create_transaction(
        self,
        order_id: str,
        amount: int,
        expiry_minutes: int = 24 * 60,
        return_url: Optional[str] = None,
    ) -> CheckoutSession:
        """Open a hosted checkout for ``order_id`` and return where to send the customer."""
        data = self._request(
            "POST",
            f"/api/transactioncreate/{self.payment_method}",
            json={
                "project": self.project,
                "order_id": order_id,
                "amount": amount,
                "api_key": self.api_key,
            },
        )
        payment = data.get("payment") or {}

        # The gateway may expire sooner than we ask; never later.
        expires_at = utcnow() + timedelta(minutes=expiry_minutes)
        if payment.get("expired_at"):
            try:
                gateway_expiry = to_naive_utc(datetime.fromisoformat(payment["expired_at"]))
                expires_at = min(expires_at, gateway_expiry)
            except ValueError:
                logger.warning("Unparseable gateway expiry %r for %s", payment["expired_at"], order_id)

        session = CheckoutSession(
            order_id=payment.get("order_id", order_id),
            amount=payment.get("amount", amount),
            token=payment.get("payment_number"),
            redirect_url=self.payment_url(
                order_id, amount, return_url or f"{settings.APP_URL}/payment/status"
            ),
            payment_method=payment.get("payment_method", self.payment_method),
            expires_at=expires_at,
        )
        logger.info("Created gateway transaction %s for %s", session.order_id, amount)
        return session

    def get_transaction(self, order_id: str, amount: int) -> TransactionDetail:
        data = self._request(
            "GET",
            "/api/transactiondetail",
            params={
                "project": self.project,
                "amount": amount,
                "order_id": order_id,
                "api_key": self.api_key,
            },
        )
        transaction = data.get("transaction") or {}
        completed_at = transaction.get("completed_at")
        return TransactionDetail(
            order_id=transaction.get("order_id", order_id),
            status=transaction.get("status", "pending"),
            completed_at=completed_at or None,
        )

    def verify_callback(self, project: str, order_id: str, amount: int) -> bool:
        if not project or not order_id or not amount or amount <= 0:
            return False
        return project == self.project


def get_payment_gateway() -> PaymentGateway:
    return PaymentGateway()
