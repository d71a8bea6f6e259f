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

"""In-memory stand-in for the Mercado Pago API.

Used for local runs (`--use_mock_provider`) and by the tests. It honours
idempotency keys the way the real provider does: a second preference request
with the same key returns the first preference instead of creating another.
"""

import datetime
import logging
from typing import Any, Dict, List, Optional
import uuid

from exceptions import UpstreamError

logger = logging.getLogger(__name__)

_CHECKOUT_HOST = "https://mock.mercadopago.local"


class MockMercadoPagoClient:
  """Mock provider with scriptable payment lookups."""

  def __init__(self) -> None:
    self.preferences: Dict[str, Dict[str, Any]] = {}
    self.payments: Dict[str, Dict[str, Any]] = {}
    self.create_calls: List[str] = []
    self.lookup_calls: List[str] = []
    self._by_idempotency_key: Dict[str, str] = {}
    # When set, the next call raises this exception instead of answering.
    self.next_error: Optional[Exception] = None

  async def close(self) -> None:
    pass

  async def create_preference(
      self, body: Dict[str, Any], idempotency_key: str
  ) -> Dict[str, Any]:
    self.create_calls.append(idempotency_key)
    self._raise_scripted_error()

    existing_id = self._by_idempotency_key.get(idempotency_key)
    if existing_id:
      logger.info(
          "Replaying preference %s for key %s", existing_id, idempotency_key
      )
      return self.preferences[existing_id]

    preference_id = f"pref_{uuid.uuid4().hex}"
    preference = {
        **body,
        "id": preference_id,
        "init_point": f"{_CHECKOUT_HOST}/checkout?pref_id={preference_id}",
        "sandbox_init_point": (
            f"{_CHECKOUT_HOST}/sandbox/checkout?pref_id={preference_id}"
        ),
        "date_created": _now(),
    }
    self.preferences[preference_id] = preference
    self._by_idempotency_key[idempotency_key] = preference_id
    return preference

  async def get_payment(self, payment_id: str) -> Dict[str, Any]:
    self.lookup_calls.append(payment_id)
    self._raise_scripted_error()
    payment = self.payments.get(str(payment_id))
    if payment is None:
      raise UpstreamError(
          "Payment provider returned HTTP 404",
          provider_status=404,
          provider_body={"message": "Payment not found"},
      )
    return payment

  def register_payment(
      self,
      payment_id: str,
      status: str,
      transaction_amount: float,
      external_reference: Optional[str] = None,
      metadata: Optional[Dict[str, Any]] = None,
      currency_id: str = "BRL",
      payer_email: Optional[str] = None,
  ) -> Dict[str, Any]:
    """Makes a payment available to `get_payment`."""
    payment = {
        "id": int(payment_id) if str(payment_id).isdigit() else payment_id,
        "status": status,
        "status_detail": "accredited" if status == "approved" else status,
        "payment_type_id": "bank_transfer",
        "payment_method_id": "pix",
        "transaction_amount": transaction_amount,
        "currency_id": currency_id,
        "external_reference": external_reference,
        "metadata": metadata or {},
        "payer": {"email": payer_email},
        "date_approved": _now() if status == "approved" else None,
    }
    self.payments[str(payment_id)] = payment
    return payment

  def pay_preference(
      self, preference_id: str, payment_id: str, status: str = "approved"
  ) -> Dict[str, Any]:
    """Simulates the buyer paying a preference at the hosted checkout."""
    preference = self.preferences[preference_id]
    amount = sum(
        item["unit_price"] * item["quantity"] for item in preference["items"]
    )
    return self.register_payment(
        payment_id,
        status,
        transaction_amount=round(amount, 2),
        external_reference=preference.get("external_reference"),
        metadata=preference.get("metadata"),
        currency_id=preference["items"][0]["currency_id"],
        payer_email=preference.get("payer", {}).get("email"),
    )

  def _raise_scripted_error(self) -> None:
    if self.next_error is not None:
      error, self.next_error = self.next_error, None
      raise error


def _now() -> str:
  return datetime.datetime.now(datetime.timezone.utc).isoformat()
