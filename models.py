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

"""Request and response models for the checkout server.

Incoming cart payloads are modelled loosely on purpose: prices and quantities
arrive from the storefront cart as whatever the content store returned, and
the checkout service validates them field by field so that it can report
which product is wrong instead of a generic schema error.
"""

from decimal import Decimal
from typing import Any, List, Optional, Union

from pydantic import AliasChoices
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field


class CartProduct(BaseModel):
  """Product snapshot as sent by the storefront cart."""

  model_config = ConfigDict(extra="allow", populate_by_name=True)

  id: Optional[Union[str, int]] = Field(
      None, validation_alias=AliasChoices("id", "_id")
  )
  name: Optional[str] = None
  price: Any = None
  intro: Optional[str] = None
  description: Optional[str] = None
  category: Any = None


class CartItem(BaseModel):
  product: Optional[CartProduct] = None
  quantity: Any = None


class ShippingAddress(BaseModel):
  model_config = ConfigDict(extra="allow")

  street: Optional[str] = None
  number: Optional[str] = None
  complement: Optional[str] = None
  neighborhood: Optional[str] = None
  city: Optional[str] = None
  state: Optional[str] = None
  postalCode: Optional[str] = None
  country: Optional[str] = None


class CustomerMetadata(BaseModel):
  """Customer data attached to a checkout attempt."""

  model_config = ConfigDict(extra="allow")

  orderNumber: Optional[str] = None
  customerName: Optional[str] = None
  customerEmail: Optional[str] = None
  customerPhone: Optional[str] = None
  externalUserId: Optional[str] = Field(
      None, validation_alias=AliasChoices("externalUserId", "clerkUserId")
  )
  shippingAddress: Optional[ShippingAddress] = None


class PixCheckoutRequest(BaseModel):
  items: Optional[List[CartItem]] = None
  metadata: Optional[CustomerMetadata] = None


class CartLine(BaseModel):
  """A validated cart line, ready to be sent to the payment provider."""

  model_config = ConfigDict(frozen=True)

  product_id: str
  name: str
  unit_price: Decimal = Field(gt=0)
  quantity: int = Field(ge=1)
  category: Optional[str] = None
  description: Optional[str] = None

  @property
  def subtotal(self) -> Decimal:
    return self.unit_price * self.quantity


class PixCheckoutResponse(BaseModel):
  success: bool = True
  preferenceId: str
  checkoutUrl: str
  sandboxCheckoutUrl: Optional[str] = None
  totalAmount: float
  orderNumber: str
  externalReference: str
  itemsCount: int


class PaymentNotification(BaseModel):
  """Notification envelope pushed by the payment provider."""

  model_config = ConfigDict(extra="allow")

  type: Optional[str] = None
  action: Optional[str] = None
  # Only `payment` notifications are read, so other topics may carry any
  # payload here.
  data: Any = None

  @property
  def payment_id(self) -> Optional[str]:
    if not isinstance(self.data, dict):
      return None
    payment_id = self.data.get("id")
    if payment_id in (None, "") or isinstance(payment_id, (bool, dict, list)):
      return None
    return str(payment_id)
