"""
Payone gateway using the Server API with hosted card iframes.

Card data is entered into Payone's hosted iframes and exchanged for a
pseudo card number in the browser; the pseudo card number is posted
back as 'paymenttoken' and sent to the Server API together with the
order's line items. Payone reports later status changes through
TransactionStatus calls, which must be answered with the literal
'TSOK'.

Configuration (via settings):
- PAYONE_API_URL: Server API endpoint
- PAYONE_MERCHANT_ID / PAYONE_PORTAL_ID / PAYONE_SUBACCOUNT_ID: Account IDs
- PAYONE_PORTAL_KEY: Portal key (sent and compared as MD5 hash)
- PAYONE_MODE: 'test' or 'live'
- PAYONE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- PAYONE_AUTHORIZE_ONLY: Send 'preauthorization' instead of 'authorization'
"""

from __future__ import annotations

import hashlib
import hmac
import time
from typing import TYPE_CHECKING, Any

import requests
from django.conf import settings

from checkout.exceptions import (
    GatewayDeclineError,
    GatewayRequestError,
    GatewayTimeoutError,
    GatewayUnavailableError,
    UnrecognizedNotificationError,
)
from checkout.gateways.base import (
    FormDescriptor,
    FormField,
    GatewayResponse,
    InboundNotification,
    NotificationAck,
    NotificationUpdate,
    PaymentGateway,
    PaymentOrder,
    PaymentRequest,
)
from checkout.snapshot import to_minor_units
from checkout.state_machines import LineItemType, OrderPaymentState

if TYPE_CHECKING:
    from checkout.models import CheckoutSession


PAYONE_API_URL = "https://api.pay1.de/post-gateway/"
PAYONE_HOSTED_JS_URL = "https://secure.pay1.de/client-api/js/v1/payone_hosted_min.js"
PAYONE_API_VERSION = "3.11"

# Server API error for a reference that was already used
DUPLICATE_REFERENCE_ERRORCODE = "911"

# Snapshot line item type -> Payone item type (it[n])
ITEM_TYPES = {
    LineItemType.GOODS: "goods",
    LineItemType.SHIPPING: "shipment",
    LineItemType.OTHER: "handling",
}

# TransactionStatus txaction -> order payment state
TXACTION_STATES = {
    "appointed": OrderPaymentState.AUTHORIZED,
    "capture": OrderPaymentState.RECEIVED,
    "paid": OrderPaymentState.RECEIVED,
    "cancelation": OrderPaymentState.CANCELED,
    "failed": OrderPaymentState.REFUSED,
}


def _md5(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def parse_response(text: str) -> dict[str, str]:
    """
    Parse a Server API answer of 'key=value' lines.

    Example:
        parse_response("status=APPROVED\\ntxid=123")
        # {"status": "APPROVED", "txid": "123"}
    """
    result = {}
    for line in text.splitlines():
        key, sep, value = line.partition("=")
        if sep:
            result[key.strip()] = value.strip()
    return result


class PayoneGateway(PaymentGateway):
    """
    Payment gateway for the Payone Server API.
    """

    code = "payone"
    label = "Payone"
    config_attributes = {
        "merchant_id": {"label": "Merchant ID", "required": True},
        "portal_id": {"label": "Portal ID", "required": True},
        "subaccount_id": {"label": "Sub-account ID", "required": True},
        "portal_key": {"label": "Portal key", "required": True},
        "mode": {"label": "Mode", "required": True},
        "api_url": {"label": "Server API URL", "required": False},
        "payment_url": {"label": "Payment form target URL", "required": False},
    }

    @classmethod
    def from_settings(cls) -> PayoneGateway:
        """Build the gateway from Django settings."""
        return cls(
            config={
                "merchant_id": getattr(settings, "PAYONE_MERCHANT_ID", ""),
                "portal_id": getattr(settings, "PAYONE_PORTAL_ID", ""),
                "subaccount_id": getattr(settings, "PAYONE_SUBACCOUNT_ID", ""),
                "portal_key": getattr(settings, "PAYONE_PORTAL_KEY", ""),
                "mode": getattr(settings, "PAYONE_MODE", "test"),
                "api_url": getattr(settings, "PAYONE_API_URL", PAYONE_API_URL),
                "payment_url": getattr(settings, "CHECKOUT_PAYMENT_URL_SELF", ""),
                "timeout": getattr(settings, "PAYONE_API_TIMEOUT_SECONDS", 10),
            },
            authorize_only=getattr(settings, "PAYONE_AUTHORIZE_ONLY", False),
        )

    def check_config(self, attributes: dict[str, Any]) -> dict[str, str | None]:
        result = super().check_config(attributes)
        mode = attributes.get("mode")
        if mode and mode not in ("test", "live"):
            result["mode"] = "Mode must be 'test' or 'live'"
        return result

    # =========================================================================
    # Payment Form
    # =========================================================================

    def _hosted_config(self) -> dict[str, str]:
        params = {
            "aid": str(self.config["subaccount_id"]),
            "encoding": "UTF-8",
            "mid": str(self.config["merchant_id"]),
            "mode": self.config["mode"],
            "portalid": str(self.config["portal_id"]),
            "request": "creditcardcheck",
            "responsetype": "JSON",
            "storecarddata": "yes",
        }
        # Hash covers the values in key order followed by the portal key
        joined = "".join(params[key] for key in sorted(params))
        params["hash"] = _md5(joined + self.config["portal_key"])
        return params

    def payment_form(self, order: PaymentOrder, session: CheckoutSession) -> FormDescriptor:
        fields = [
            FormField(
                code="paymenttoken",
                label="Pseudo card number",
                required=True,
                public=False,
            ),
            FormField(code="payment.cardno", label="Credit card number", type="container", internal_type="integer"),
            FormField(code="payment.expiry", label="Expiry", type="container"),
            FormField(code="payment.cvv", label="Verification number", type="container", internal_type="integer"),
        ]
        return FormDescriptor(
            url=self.config.get("payment_url") or "",
            method="POST",
            fields=fields,
            script_url=PAYONE_HOSTED_JS_URL,
            client_config={
                "request": self._hosted_config(),
                "token_field": "paymenttoken",
                "containers": {
                    "cardpan": "payment.cardno",
                    "cardexpire": "payment.expiry",
                    "cardcvc2": "payment.cvv",
                },
            },
        )

    # =========================================================================
    # Core Operations
    # =========================================================================

    def _build_params(self, request: PaymentRequest) -> dict[str, Any]:
        snapshot = request.snapshot
        params: dict[str, Any] = {
            "mid": self.config["merchant_id"],
            "portalid": self.config["portal_id"],
            "key": _md5(self.config["portal_key"]),
            "api_version": PAYONE_API_VERSION,
            "mode": self.config["mode"],
            "request": "preauthorization" if self.authorize_only else "authorization",
            "encoding": "UTF-8",
            "aid": self.config["subaccount_id"],
            "clearingtype": "cc",
            "reference": str(request.order.id),
            "amount": snapshot.total_minor_units,
            "currency": snapshot.currency,
            "pseudocardpan": request.token,
        }

        if request.order.customer_name:
            first, _, last = request.order.customer_name.strip().rpartition(" ")
            params["lastname"] = last
            if first:
                params["firstname"] = first
        if request.order.customer_email:
            params["email"] = request.order.customer_email
        if request.customer_ref:
            params["userid"] = request.customer_ref

        payment_url = self.config.get("payment_url")
        if payment_url:
            params["successurl"] = payment_url
            params["errorurl"] = payment_url
            params["backurl"] = payment_url

        for index, item in enumerate(snapshot.line_items, start=1):
            params[f"it[{index}]"] = ITEM_TYPES.get(item.item_type, "goods")
            params[f"id[{index}]"] = item.id
            params[f"pr[{index}]"] = to_minor_units(item.unit_price, snapshot.currency)
            params[f"no[{index}]"] = item.quantity
            params[f"de[{index}]"] = item.name
            params[f"va[{index}]"] = item.tax_rate_percent

        return params

    def send_payment(self, request: PaymentRequest) -> GatewayResponse:
        """
        Send an (pre)authorization request to the Server API.

        A stored txid means an earlier request reached Payone; it is not
        sent again and the outcome is left to the TransactionStatus call.
        Status PENDING and a duplicate-reference error (an unanswered
        earlier request did reach Payone) are reported as pending.

        Raises:
            GatewayDeclineError: Payone answered with status ERROR
            GatewayRequestError: No pseudo card number to send
            GatewayUnavailableError: Connection or HTTP error
            GatewayTimeoutError: Request timed out
        """
        logger = self.get_logger()

        log_context = {
            "operation": "send_payment",
            "gateway": self.code,
            "order_id": request.order.id,
            "amount": request.snapshot.total_minor_units,
            "currency": request.snapshot.currency,
            "intent_ref": request.intent_ref,
        }

        if request.intent_ref:
            logger.info("Payone transaction already sent, awaiting status", extra=log_context)
            return GatewayResponse(
                is_successful=False,
                is_pending=True,
                intent_reference=request.intent_ref,
            )

        if not request.token:
            raise GatewayRequestError(
                "A pseudo card number is required",
                gateway=self.code,
            )

        start_time = time.time()
        logger.info("Starting Payone operation", extra=log_context)

        try:
            http_response = requests.post(
                self.config.get("api_url") or PAYONE_API_URL,
                data=self._build_params(request),
                timeout=self.config.get("timeout", 10),
            )
            http_response.raise_for_status()
        except requests.RequestException as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_request_error(e, log_context, duration_ms)
            raise

        data = parse_response(http_response.text)
        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Payone operation completed",
            extra={
                **log_context,
                "status": data.get("status"),
                "txid": data.get("txid"),
                "duration_ms": duration_ms,
            },
        )
        return self._to_response(data)

    def _to_response(self, data: dict[str, str]) -> GatewayResponse:
        status = data.get("status")

        if status == "APPROVED":
            return GatewayResponse(
                is_successful=True,
                transaction_reference=data.get("txid"),
                intent_reference=data.get("txid"),
                customer_reference=data.get("userid"),
                raw=data,
            )

        if status == "REDIRECT":
            return GatewayResponse(
                is_successful=False,
                is_redirect=True,
                redirect_url=data.get("redirecturl"),
                intent_reference=data.get("txid"),
                customer_reference=data.get("userid"),
                raw=data,
            )

        if status == "PENDING":
            return GatewayResponse(
                is_successful=False,
                is_pending=True,
                intent_reference=data.get("txid"),
                customer_reference=data.get("userid"),
                raw=data,
            )

        if status == "ERROR" and data.get("errorcode") == DUPLICATE_REFERENCE_ERRORCODE:
            # An earlier request with this reference reached Payone
            self.get_logger().warning(
                "Payone already holds a transaction for this reference",
                extra={"gateway": self.code, "errorcode": data.get("errorcode")},
            )
            return GatewayResponse(
                is_successful=False,
                is_pending=True,
                message="Payment is being processed",
                raw=data,
            )

        if status == "ERROR":
            self.get_logger().warning(
                "Payment refused by Payone",
                extra={"gateway": self.code, "errorcode": data.get("errorcode")},
            )
            raise GatewayDeclineError(
                data.get("customermessage") or data.get("errormessage") or "Payment refused",
                gateway=self.code,
                gateway_code=data.get("errorcode"),
                details={"errormessage": data.get("errormessage")},
            )

        raise GatewayUnavailableError(
            f"Unexpected Payone status: {status}",
            gateway=self.code,
            gateway_code="unexpected_status",
        )

    # =========================================================================
    # TransactionStatus Notifications
    # =========================================================================

    def parse_notification(self, notification: InboundNotification) -> NotificationUpdate:
        """
        Verify and interpret a TransactionStatus call.

        Raises:
            UnrecognizedNotificationError: Missing reference, wrong portal
                key or unhandled txaction
        """
        params = notification.params
        reference = params.get("reference")
        if not reference:
            raise UnrecognizedNotificationError(
                "TransactionStatus without reference",
                details={"gateway": self.code, "txid": params.get("txid")},
            )

        expected_key = _md5(self.config["portal_key"])
        if not hmac.compare_digest(str(params.get("key") or ""), expected_key):
            raise UnrecognizedNotificationError(
                "TransactionStatus with invalid portal key",
                details={"gateway": self.code, "reference": reference},
            )

        txaction = params.get("txaction")
        state = TXACTION_STATES.get(txaction)
        if state is None:
            raise UnrecognizedNotificationError(
                f"Unhandled Payone txaction: {txaction}",
                details={"gateway": self.code, "reference": reference},
            )

        txid = params.get("txid")
        try:
            sequence = int(params.get("sequencenumber") or 0)
        except ValueError:
            sequence = 0

        transaction_ref = None
        if state in (OrderPaymentState.AUTHORIZED, OrderPaymentState.RECEIVED):
            transaction_ref = txid

        return NotificationUpdate(
            order_id=str(reference),
            state=state,
            event_key=f"{txid}:{sequence}:{txaction}",
            sequence=sequence,
            transaction_reference=transaction_ref,
            payload={k: v for k, v in params.items() if k != "key"},
        )

    def acknowledge(self, recognized: bool) -> NotificationAck:
        return NotificationAck(body="TSOK", status=200, content_type="text/plain")

    # =========================================================================
    # Error Handling
    # =========================================================================

    def _handle_request_error(
        self,
        error: requests.RequestException,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate requests exceptions to checkout exceptions.

        Raises:
            GatewayTimeoutError: Request timed out
            GatewayUnavailableError: Connection failed or HTTP error status
        """
        logger = self.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, requests.Timeout):
            logger.error("Payone request timed out", extra=log_context)
            raise GatewayTimeoutError(
                "No response from Payone. The payment will be reconciled.",
                gateway=self.code,
                gateway_code="timeout",
            )

        logger.error(
            f"Payone request failed: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise GatewayUnavailableError(
            "Could not reach Payone. Please retry.",
            gateway=self.code,
            gateway_code="connection_error",
        )
