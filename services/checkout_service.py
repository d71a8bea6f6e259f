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

"""Checkout service for creating PIX payment preferences.

This module provides the `CheckoutService` class, which turns a storefront
cart and the customer's metadata into a Mercado Pago checkout preference.

Key responsibilities include:
- Validating the cart and customer data, failing fast on the first problem.
- Mapping cart lines into provider line items in the store currency.
- Generating a fresh correlation token per checkout attempt, used both as
  the provider idempotency key and as the preference's external reference.
- Computing the display total. The amount actually charged is computed by
  the provider from the line items it receives.

The service keeps no local state; each valid request results in exactly one
remote preference-creation call.
"""

import datetime
import decimal
from decimal import Decimal
import json
import logging
import math
from typing import Any, Dict, Iterable, List, Optional
import uuid

from config import Settings
from exceptions import ConfigurationError
from exceptions import InvalidInputError
from exceptions import UpstreamError
from models import CartItem
from models import CartLine
from models import CustomerMetadata
from models import PixCheckoutRequest
from models import PixCheckoutResponse
from pydantic import EmailStr
from pydantic import TypeAdapter
from pydantic import ValidationError

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 256
DEFAULT_CATEGORY = "general"
DEFAULT_DESCRIPTION = "Store product"
UNNAMED_PRODUCT = "unnamed product"

_EMAIL_ADAPTER = TypeAdapter(EmailStr)


class CheckoutService:
  """Service for building payment preferences from carts."""

  def __init__(self, settings: Settings, provider_client):
    self.settings = settings
    self.provider_client = provider_client

  async def create_pix_checkout(
      self,
      checkout_req: PixCheckoutRequest,
      idempotency_key: Optional[str] = None,
  ) -> PixCheckoutResponse:
    """Validates the cart and creates a preference at the provider.

    Args:
      checkout_req: The cart and customer metadata.
      idempotency_key: Optional client-supplied key. When present it is
        forwarded to the provider so that client retries resolve to the same
        preference; otherwise the fresh correlation token is used.

    Returns:
      The preference ID, redirect URLs and display total.

    Raises:
      InvalidInputError: If the cart or customer data is unusable.
      ConfigurationError: If no provider credential is configured.
      UpstreamAuthError: If the provider rejects the credential.
      UpstreamError: If the provider fails or returns an unusable response.
    """
    if not checkout_req.items:
      raise InvalidInputError(
          "empty cart",
          details="The product list is empty or missing",
          suggestion="Add products to the cart before checking out",
      )

    metadata = _validate_metadata(checkout_req.metadata)

    if not self.settings.has_credential:
      logger.error("Payment provider access token is not configured")
      raise ConfigurationError(
          "payment configuration not found",
          details="The payment provider credential is not configured",
      )

    lines = build_cart_lines(checkout_req.items)
    total = compute_total(lines)
    if not math.isfinite(float(total)):
      raise InvalidInputError(
          "invalid cart total",
          details="The cart total is too large to be charged",
          suggestion="Reduce the quantities in the cart",
      )

    order_number = metadata.orderNumber or generate_order_number()
    correlation_token = make_correlation_token(order_number)
    body = self.build_preference(
        lines, metadata, order_number, correlation_token
    )

    logger.info(
        "Creating preference for order %s (%d items, total %s %s)",
        order_number,
        len(lines),
        total,
        self.settings.currency,
    )
    preference = await self.provider_client.create_preference(
        body, idempotency_key or correlation_token
    )

    preference_id = preference.get("id")
    if not preference_id:
      logger.error("Provider response for order %s has no ID", order_number)
      raise UpstreamError(
          "Payment provider returned no preference ID",
          provider_body=preference,
      )

    checkout_url = preference.get("init_point")
    sandbox_url = preference.get("sandbox_init_point")
    if not checkout_url and not sandbox_url:
      logger.error(
          "Provider response for preference %s has no checkout URL",
          preference_id,
      )
      raise UpstreamError(
          "Payment provider returned no checkout URL",
          provider_body=preference,
      )

    # A replayed idempotency key returns the preference created by the first
    # attempt; its reference is the one the webhook will carry.
    external_reference = (
        preference.get("external_reference") or correlation_token
    )
    order_number = (
        (preference.get("metadata") or {}).get("order_number") or order_number
    )

    logger.info(
        "Created preference %s for order %s", preference_id, order_number
    )
    return PixCheckoutResponse(
        preferenceId=str(preference_id),
        checkoutUrl=checkout_url or sandbox_url,
        sandboxCheckoutUrl=sandbox_url,
        totalAmount=float(total),
        orderNumber=order_number,
        externalReference=external_reference,
        itemsCount=len(lines),
    )

  def build_preference(
      self,
      lines: List[CartLine],
      metadata: CustomerMetadata,
      order_number: str,
      correlation_token: str,
  ) -> Dict[str, Any]:
    """Builds the provider preference payload."""
    address = None
    if metadata.shippingAddress:
      address = json.dumps(
          metadata.shippingAddress.model_dump(exclude_none=True)
      )

    return {
        "items": [self._to_provider_item(line) for line in lines],
        "payer": {
            "name": metadata.customerName,
            "email": metadata.customerEmail,
        },
        "back_urls": {
            "success": self.settings.url(f"/success?order={order_number}"),
            "failure": self.settings.url("/cart"),
            "pending": self.settings.url("/cart"),
        },
        "auto_return": "approved",
        "payment_methods": {
            "excluded_payment_methods": [],
            "excluded_payment_types": [],
            "installments": 1,
        },
        "notification_url": self.settings.url("/webhooks/payment"),
        "statement_descriptor": self.settings.statement_descriptor,
        "external_reference": correlation_token,
        "expires": False,
        "binary_mode": False,
        "metadata": {
            "customer_name": metadata.customerName,
            "customer_email": metadata.customerEmail,
            "customer_phone": metadata.customerPhone,
            "external_user_id": metadata.externalUserId,
            "order_number": order_number,
            "customer_address": address,
        },
    }

  def _to_provider_item(self, line: CartLine) -> Dict[str, Any]:
    return {
        "id": line.product_id,
        "title": line.name[:TITLE_MAX_LENGTH],
        "description": line.description or DEFAULT_DESCRIPTION,
        "category_id": line.category or DEFAULT_CATEGORY,
        "quantity": line.quantity,
        "currency_id": self.settings.currency,
        "unit_price": float(line.unit_price),
    }


def _validate_metadata(
    metadata: Optional[CustomerMetadata],
) -> CustomerMetadata:
  if (
      metadata is None
      or not (metadata.customerEmail or "").strip()
      or not (metadata.customerName or "").strip()
  ):
    raise InvalidInputError(
        "incomplete customer data",
        details="Customer email or name not provided",
        suggestion="Check that you are signed in",
    )
  try:
    _EMAIL_ADAPTER.validate_python(metadata.customerEmail.strip())
  except ValidationError as e:
    raise InvalidInputError(
        "invalid customer email",
        details=f"'{metadata.customerEmail}' is not a valid email address",
        suggestion="Check the email address on your account",
    ) from e
  return metadata


def build_cart_lines(items: Iterable[CartItem]) -> List[CartLine]:
  """Validates every cart item; any invalid item rejects the whole cart."""
  lines = []
  for index, item in enumerate(items):
    product = item.product
    name = (product.name if product else None) or UNNAMED_PRODUCT

    price = parse_price(product.price if product else None)
    if price is None:
      raise InvalidInputError(
          f"invalid price for product {name}",
          details=f"Product {name} has an invalid price",
          suggestion="Remove the affected products from the cart",
      )

    quantity = parse_quantity(item.quantity)
    if quantity is None:
      raise InvalidInputError(
          f"invalid quantity for product {name}",
          details=f"Product {name} has an invalid quantity: {item.quantity}",
          suggestion="Update the quantity in the cart",
      )

    category = None
    if isinstance(product.category, str) and product.category.strip():
      category = product.category.strip()
    lines.append(
        CartLine(
            product_id=(
                str(product.id) if product.id is not None else f"item-{index}"
            ),
            name=name,
            unit_price=price,
            quantity=quantity,
            category=category,
            description=product.intro or product.description,
        )
    )
  return lines


def parse_price(value: Any) -> Optional[Decimal]:
  """Returns the price as a positive finite Decimal, or None if invalid."""
  if value is None or isinstance(value, bool):
    return None
  try:
    if isinstance(value, (int, Decimal)):
      price = Decimal(value)
    elif isinstance(value, float):
      price = Decimal(str(value))
    elif isinstance(value, str):
      price = Decimal(value.strip())
    else:
      return None
  except decimal.InvalidOperation:
    return None
  if not price.is_finite() or price <= 0:
    return None
  # Prices are sent to the provider as JSON numbers.
  if not math.isfinite(float(price)):
    return None
  return price


def parse_quantity(value: Any) -> Optional[int]:
  """Returns the quantity as an int >= 1, or None if invalid.

  A missing quantity means one unit.
  """
  if value is None or value == "":
    return 1
  if isinstance(value, bool):
    return None
  if isinstance(value, int):
    quantity = value
  elif isinstance(value, float) and value.is_integer():
    quantity = int(value)
  elif isinstance(value, str) and value.strip().isdecimal():
    quantity = int(value.strip())
  else:
    return None
  return quantity if quantity >= 1 else None


def compute_total(lines: Iterable[CartLine]) -> Decimal:
  return sum((line.subtotal for line in lines), Decimal("0"))


def generate_order_number() -> str:
  now_ms = int(datetime.datetime.now(datetime.timezone.utc).timestamp() * 1000)
  return f"ORDER-{now_ms}-{uuid.uuid4().hex[:9]}"


def make_correlation_token(
    order_number: str, now: Optional[datetime.datetime] = None
) -> str:
  """Derives a unique per-attempt token from the order number."""
  now = now or datetime.datetime.now(datetime.timezone.utc)
  return f"{order_number}-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:8]}"
