#   Copyright 2026 UCP Authors
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""Webhook service for payment notifications.

The notification body is only a hint that something changed; the payment's
status and amount are always fetched from the provider before anything is
written. Deliveries are at-least-once, so an order is written at most once
per provider payment ID.
"""

import datetime
import json
import logging
from typing import Any, Dict, Optional

import db
from enums import OrderStatus
from enums import PaymentStatus
from enums import TERMINAL_FAILURE_STATUSES
from enums import WebhookOutcome
from exceptions import CheckoutError
from exceptions import PersistenceError
from models import PaymentNotification
from sqlalchemy.exc import IntegrityError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

PAYMENT_TOPIC = "payment"
DEFAULT_CUSTOMER_NAME = "Customer"


class WebhookService:
  """Service for turning confirmed payments into orders."""

  def __init__(
      self,
      provider_client,
      store_session: AsyncSession,
      default_currency: str = "BRL",
  ):
    self.provider_client = provider_client
    self.store_session = store_session
    self.default_currency = default_currency

  async def handle_notification(
      self, notification: PaymentNotification
  ) -> WebhookOutcome:
    """Processes one provider notification.

    Only lookup results can lead to a write, and only `approved` ones.
    Provider lookup failures are logged and reported as LOOKUP_FAILED rather
    than raised.

    Raises:
      PersistenceError: If an approved payment could not be recorded.
    """
    if notification.type != PAYMENT_TOPIC:
      logger.info("Ignoring notification of type %s", notification.type)
      return WebhookOutcome.IGNORED

    payment_id = notification.payment_id
    if not payment_id:
      logger.warning("Payment notification without data.id: %s", notification)
      return WebhookOutcome.MISSING_PAYMENT_ID

    logger.info(
        "Processing payment %s (action %s)", payment_id, notification.action
    )
    try:
      payment = await self.provider_client.get_payment(payment_id)
    except CheckoutError as e:
      logger.error("Lookup of payment %s failed: %s", payment_id, e.message)
      return WebhookOutcome.LOOKUP_FAILED

    status = payment.get("status")
    if status != PaymentStatus.APPROVED:
      self._log_unapproved(payment_id, payment)
      return WebhookOutcome.NOT_APPROVED

    order = build_order_document(payment_id, payment, self.default_currency)
    try:
      existing = await db.get_order_by_payment_id(
          self.store_session, payment_id
      )
    except SQLAlchemyError as e:
      self._report_unrecorded(order, e)
      raise PersistenceError(
          "Failed to check for an existing order",
          payment_id=payment_id,
          external_reference=order["externalReference"],
      ) from e
    if existing:
      logger.info(
          "Order %s already recorded for payment %s",
          existing.get("orderNumber"),
          payment_id,
      )
      return WebhookOutcome.DUPLICATE

    try:
      db.add_order(self.store_session, order)
      await self.store_session.commit()
    except IntegrityError:
      # A concurrent delivery for the same payment won the insert.
      await self.store_session.rollback()
      logger.info("Order for payment %s recorded concurrently", payment_id)
      return WebhookOutcome.DUPLICATE
    except SQLAlchemyError as e:
      await self.store_session.rollback()
      self._report_unrecorded(order, e)
      raise PersistenceError(
          "Failed to record a confirmed payment",
          payment_id=payment_id,
          external_reference=order["externalReference"],
      ) from e

    logger.info(
        "Recorded order %s for payment %s", order["orderNumber"], payment_id
    )
    return WebhookOutcome.ORDER_CREATED

  def _report_unrecorded(self, order: Dict[str, Any], error: Exception) -> None:
    logger.critical(
        "PAID BUT UNRECORDED: payment %s (external reference %s, amount"
        " %s %s) could not be stored: %s",
        order["paymentId"],
        order["externalReference"],
        order["totalPrice"],
        order["currency"],
        error,
    )

  def _log_unapproved(self, payment_id: str, payment: Dict[str, Any]) -> None:
    status = payment.get("status")
    if status in TERMINAL_FAILURE_STATUSES:
      logger.warning(
          "Payment %s for %s ended as %s (%s); no order recorded",
          payment_id,
          payment.get("external_reference"),
          status,
          payment.get("status_detail"),
      )
    else:
      logger.info(
          "Payment %s for %s is %s; waiting for approval",
          payment_id,
          payment.get("external_reference"),
          status,
      )


def build_order_document(
    payment_id: str, payment: Dict[str, Any], default_currency: str = "BRL"
) -> Dict[str, Any]:
  """Builds the order document from the authoritative payment record.

  The total is the provider's transaction amount, never a client total.
  """
  metadata = payment.get("metadata") or {}
  payer = payment.get("payer") or {}
  additional_payer = (payment.get("additional_info") or {}).get("payer") or {}
  external_reference = payment.get("external_reference")

  return {
      "orderNumber": metadata.get("order_number") or external_reference,
      "externalReference": external_reference,
      "paymentId": str(payment_id),
      "customerName": (
          metadata.get("customer_name")
          or additional_payer.get("first_name")
          or DEFAULT_CUSTOMER_NAME
      ),
      "customerEmail": (
          metadata.get("customer_email") or payer.get("email") or ""
      ),
      "customerPhone": metadata.get("customer_phone") or "",
      "externalUserId": metadata.get("external_user_id") or "",
      "shippingAddress": _parse_address(metadata.get("customer_address")),
      "totalPrice": payment.get("transaction_amount") or 0,
      "currency": payment.get("currency_id") or default_currency,
      "status": OrderStatus.PAID.value,
      "paymentMethod": payment.get("payment_method_id") or "pix",
      "createdAt": datetime.datetime.now(datetime.timezone.utc).isoformat(),
      "providerRawStatus": payment.get("status"),
      "provider": {
          "payment_id": payment.get("id"),
          "status": payment.get("status"),
          "status_detail": payment.get("status_detail"),
          "payment_type_id": payment.get("payment_type_id"),
          "date_approved": payment.get("date_approved"),
          "transaction_amount": payment.get("transaction_amount"),
      },
  }


def _parse_address(value: Any) -> Optional[Dict[str, Any]]:
  if isinstance(value, dict):
    return value
  if isinstance(value, str) and value:
    try:
      parsed = json.loads(value)
    except ValueError:
      logger.warning("Ignoring unparseable customer address: %r", value)
      return None
    return parsed if isinstance(parsed, dict) else None
  return None
