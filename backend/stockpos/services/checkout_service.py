# Overview: Checkout state machine between the cart and the sale processor.

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from flask import current_app

from ..models.sales import (
    PAYMENT_CASH,
    PAYMENT_CREDIT,
    PAYMENT_METHODS,
    PAYMENT_POS,
    PAYMENT_TRANSFER,
)
from ..validation import (
    EmptyCartError,
    InvalidPaymentMethodError,
    MissingDebtorFieldError,
    PaymentMethodRequiredError,
)
from . import sales_service
from .cart_service import CartStore
from .sales_service import DebtorDetails, SaleError, SaleResult


class CheckoutState(str, enum.Enum):
    SELECTING_PAYMENT = "SELECTING_PAYMENT"
    CAPTURING_DEBTOR = "CAPTURING_DEBTOR"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    ABANDONED = "ABANDONED"


class CheckoutError(Exception):
    """Action not allowed in the current checkout state."""


# Labels the mobile client has used for each method
_PAYMENT_ALIASES = {
    "cash": PAYMENT_CASH,
    "transfer": PAYMENT_TRANSFER,
    "bank transfer": PAYMENT_TRANSFER,
    "pos": PAYMENT_POS,
    "card": PAYMENT_POS,
    "credit": PAYMENT_CREDIT,
    "credit (debtor)": PAYMENT_CREDIT,
    "debtor": PAYMENT_CREDIT,
}


def normalize_payment_method(value) -> str:
    key = str(value or "").strip().lower()
    if not key:
        raise PaymentMethodRequiredError("Please select a payment method")
    method = _PAYMENT_ALIASES.get(key)
    if method is None:
        raise InvalidPaymentMethodError(
            f"Unknown payment method: {value}",
            details={"allowed": list(PAYMENT_METHODS)},
        )
    return method


class CheckoutSession:
    """
    One checkout attempt over one cart.

    SELECTING_PAYMENT -> (credit) CAPTURING_DEBTOR -> CONFIRMED -> COMPLETED | FAILED

    A FAILED checkout keeps the cart and can be confirmed again. Retries reuse
    the session's idempotency key, so a commit that actually succeeded before
    the error surfaced is returned instead of being recorded twice.
    """

    def __init__(self, cart: CartStore, idempotency_key: str | None = None):
        if cart.is_empty():
            raise EmptyCartError("Cart is empty")
        self.cart = cart
        self.owner_id = cart.owner_id
        self.idempotency_key = idempotency_key or uuid.uuid4().hex
        self.state = CheckoutState.SELECTING_PAYMENT
        self.payment_method: str | None = None
        self.debtor: DebtorDetails | None = None
        self.result: SaleResult | None = None

    def _ensure_open(self) -> None:
        if self.state in (CheckoutState.COMPLETED, CheckoutState.ABANDONED, CheckoutState.CONFIRMED):
            raise CheckoutError(f"Checkout is {self.state.value}")

    def select_payment(self, method) -> str:
        self._ensure_open()
        self.payment_method = normalize_payment_method(method)
        if self.payment_method == PAYMENT_CREDIT:
            self.state = CheckoutState.CAPTURING_DEBTOR
        else:
            self.debtor = None
            self.state = CheckoutState.SELECTING_PAYMENT
        return self.payment_method

    def set_debtor(
        self,
        customer_name: str | None,
        phone_number: str | None,
        amount_owed_cents: int | None,
        notes: str | None = None,
    ) -> DebtorDetails:
        self._ensure_open()
        if self.payment_method != PAYMENT_CREDIT:
            raise CheckoutError("Debtor details only apply to credit sales")
        self.debtor = DebtorDetails(
            customer_name=(customer_name or "").strip(),
            phone_number=(phone_number or "").strip(),
            amount_owed_cents=amount_owed_cents or 0,
            notes=(notes or "").strip() or None,
        )
        return self.debtor

    def _validate(self) -> None:
        if self.payment_method is None:
            raise PaymentMethodRequiredError("Please select a payment method")
        if self.payment_method != PAYMENT_CREDIT:
            return
        debtor = self.debtor
        if debtor is None or not debtor.customer_name:
            raise MissingDebtorFieldError("customer_name", "Please enter customer name")
        if not debtor.phone_number:
            raise MissingDebtorFieldError("phone_number", "Please enter phone number")
        if debtor.amount_owed_cents <= 0:
            raise MissingDebtorFieldError("amount_owed_cents", "Please enter a valid amount owed")

    def confirm(self, *, now: datetime | None = None) -> SaleResult:
        """
        Validate, then hand the cart to the sale processor.

        Validation errors leave the state unchanged. Processor errors move to
        FAILED and are re-raised with the cart intact.
        """
        self._ensure_open()
        if self.cart.is_empty():
            raise EmptyCartError("Cart is empty")
        self._validate()

        lines = self.cart.resolve()
        self.state = CheckoutState.CONFIRMED
        try:
            result = sales_service.process_sale(
                self.owner_id,
                lines,
                self.payment_method,
                debtor=self.debtor if self.payment_method == PAYMENT_CREDIT else None,
                idempotency_key=self.idempotency_key,
                now=now,
            )
        except SaleError:
            self.state = CheckoutState.FAILED
            current_app.logger.warning("Checkout failed for owner %s; cart kept for retry", self.owner_id)
            raise
        except Exception:
            self.state = CheckoutState.FAILED
            current_app.logger.exception("Unexpected checkout failure for owner %s; cart kept for retry", self.owner_id)
            raise

        self.result = result
        self.state = CheckoutState.COMPLETED
        self.cart.clear()
        return result

    def abandon(self) -> None:
        if self.state == CheckoutState.COMPLETED:
            raise CheckoutError("Checkout already completed")
        self.cart.clear()
        self.state = CheckoutState.ABANDONED
