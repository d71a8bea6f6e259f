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

"""Integration tests for the checkout server."""

import asyncio
import os
import shutil
import tempfile
from typing import Any, AsyncGenerator, Dict, List, Optional

from absl.testing import absltest
from clients.mock_mercado_pago import MockMercadoPagoClient
from config import Settings
import db
import dependencies
from exceptions import UpstreamAuthError
from exceptions import UpstreamError
from fastapi.testclient import TestClient
from server import app
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool


class IntegrationTest(absltest.TestCase):
  """Integration tests for the checkout server application."""

  def setUp(self) -> None:
    """Sets up a temporary order store, settings and the mock provider."""
    super().setUp()
    self.test_dir = tempfile.mkdtemp()
    self.store_db = os.path.join(self.test_dir, "test_orders.db")

    self.engine = create_async_engine(
        f"sqlite+aiosqlite:///{self.store_db}", echo=False, poolclass=NullPool
    )
    self.session_factory = sessionmaker(
        self.engine, expire_on_commit=False, class_=AsyncSession
    )

    async def init_schema() -> None:
      async with self.engine.begin() as conn:
        await conn.run_sync(db.StoreBase.metadata.create_all)

    asyncio.run(init_schema())

    async def override_get_store_db() -> AsyncGenerator[AsyncSession, None]:
      async with self.session_factory() as session:
        yield session

    app.dependency_overrides[dependencies.get_store_db] = override_get_store_db

    self.provider = MockMercadoPagoClient()
    self._set_settings(access_token="TEST-access-token")
    app.state.provider_client = self.provider

    self.client = TestClient(app, raise_server_exceptions=False)

  def tearDown(self) -> None:
    """Cleans up the test environment."""
    app.dependency_overrides.clear()
    del app.state.settings
    del app.state.provider_client

    asyncio.run(self.engine.dispose())
    shutil.rmtree(self.test_dir)
    super().tearDown()

  def _set_settings(self, **overrides: Any) -> None:
    values = {
        "base_url": "https://shop.example",
        "environment": "production",
    }
    values.update(overrides)
    app.state.settings = Settings(**values)

  def _list_orders(self) -> List[Dict[str, Any]]:
    async def fetch() -> List[Dict[str, Any]]:
      async with self.session_factory() as session:
        return [o.data for o in await db.list_orders(session)]

    return asyncio.run(fetch())

  def _checkout_payload(
      self,
      items: Optional[List[Dict[str, Any]]] = None,
      **metadata_overrides: Any,
  ) -> Dict[str, Any]:
    """Builds a checkout body shaped like the storefront cart sends it."""
    if items is None:
      items = [
          {
              "product": {"id": "mug", "name": "Coffee Mug", "price": 100},
              "quantity": 2,
          },
          {
              "product": {
                  "_id": "tee",
                  "name": "T-Shirt",
                  "price": "50",
                  "intro": "Cotton tee",
                  "category": "apparel",
              },
              "quantity": 1,
          },
      ]
    metadata = {
        "orderNumber": "ORD-1001",
        "customerName": "Ana Souza",
        "customerEmail": "ana@example.com",
        "externalUserId": "user_42",
        "shippingAddress": {
            "street": "Rua das Flores",
            "number": "12",
            "city": "Curitiba",
            "state": "PR",
            "postalCode": "80000-000",
            "country": "BR",
        },
    }
    metadata.update(metadata_overrides)
    return {"items": items, "metadata": metadata}

  def _notify(self, payment_id: Any, event_type: str = "payment"):
    return self.client.post(
        "/webhooks/payment",
        json={
            "type": event_type,
            "action": "payment.updated",
            "data": {"id": payment_id},
        },
    )

  # --- Preference builder ---

  def test_health_reports_credential(self) -> None:
    response = self.client.get("/checkout/pix")
    self.assertEqual(response.status_code, 200)
    self.assertTrue(response.json()["hasCredential"])

    self._set_settings(access_token=None)
    response = self.client.get("/checkout/pix")
    self.assertFalse(response.json()["hasCredential"])

  def test_create_checkout(self) -> None:
    """Tests the 100x2 + 50x1 cart from end to end of the builder."""
    response = self.client.post("/checkout/pix", json=self._checkout_payload())
    self.assertEqual(response.status_code, 200, f"Response: {response.text}")

    body = response.json()
    self.assertTrue(body["success"])
    self.assertEqual(body["totalAmount"], 250)
    self.assertEqual(body["orderNumber"], "ORD-1001")
    self.assertEqual(body["itemsCount"], 2)
    self.assertTrue(body["externalReference"].startswith("ORD-1001-"))
    self.assertIn(body["preferenceId"], body["checkoutUrl"])
    self.assertIsNotNone(body["sandboxCheckoutUrl"])

    self.assertLen(self.provider.create_calls, 1)
    preference = self.provider.preferences[body["preferenceId"]]
    self.assertEqual(
        preference["external_reference"], body["externalReference"]
    )
    self.assertEqual(
        preference["notification_url"],
        "https://shop.example/webhooks/payment",
    )
    self.assertEqual(
        preference["back_urls"]["success"],
        "https://shop.example/success?order=ORD-1001",
    )
    mug, tee = preference["items"]
    self.assertEqual(mug["unit_price"], 100.0)
    self.assertEqual(mug["quantity"], 2)
    self.assertEqual(mug["category_id"], "general")
    self.assertEqual(mug["currency_id"], "BRL")
    self.assertEqual(tee["id"], "tee")
    self.assertEqual(tee["category_id"], "apparel")
    self.assertEqual(tee["description"], "Cotton tee")

  def test_invalid_price_rejects_whole_cart(self) -> None:
    items = [
        {"product": {"id": "mug", "name": "Coffee Mug", "price": 100}},
        {"product": {"id": "cap", "name": "Cap", "price": "abc"}},
    ]
    response = self.client.post(
        "/checkout/pix", json=self._checkout_payload(items=items)
    )
    self.assertEqual(response.status_code, 400)
    self.assertEqual(response.json()["error"], "invalid price for product Cap")
    self.assertFalse(response.json()["success"])
    self.assertEmpty(self.provider.create_calls)

  def test_non_positive_price_rejected(self) -> None:
    for price in (0, -10, "0.00"):
      items = [{"product": {"id": "mug", "name": "Mug", "price": price}}]
      response = self.client.post(
          "/checkout/pix", json=self._checkout_payload(items=items)
      )
      self.assertEqual(response.status_code, 400, f"price={price!r}")
    self.assertEmpty(self.provider.create_calls)

  def test_out_of_range_price_and_quantity_rejected(self) -> None:
    cases = (
        ({"name": "Mug", "price": "1e400"}, 1, "invalid price"),
        ({"name": "Mug", "price": 10}, "\u00b2", "invalid quantity"),
    )
    for product, quantity, error in cases:
      items = [{"product": product, "quantity": quantity}]
      response = self.client.post(
          "/checkout/pix", json=self._checkout_payload(items=items)
      )
      self.assertEqual(response.status_code, 400, response.text)
      self.assertEqual(response.json()["error"], f"{error} for product Mug")
    self.assertEmpty(self.provider.create_calls)

  def test_empty_cart(self) -> None:
    response = self.client.post(
        "/checkout/pix", json=self._checkout_payload(items=[])
    )
    self.assertEqual(response.status_code, 400)
    self.assertEqual(response.json()["error"], "empty cart")
    self.assertIn("suggestion", response.json())

  def test_missing_customer_email(self) -> None:
    response = self.client.post(
        "/checkout/pix", json=self._checkout_payload(customerEmail=None)
    )
    self.assertEqual(response.status_code, 400)
    self.assertEqual(response.json()["error"], "incomplete customer data")
    self.assertEmpty(self.provider.create_calls)

  def test_missing_credential(self) -> None:
    self._set_settings(access_token=None)
    response = self.client.post("/checkout/pix", json=self._checkout_payload())
    self.assertEqual(response.status_code, 500)
    self.assertEqual(response.json()["code"], "CONFIGURATION_ERROR")
    self.assertEmpty(self.provider.create_calls)

    # Client-fixable problems are still reported first.
    response = self.client.post(
        "/checkout/pix", json=self._checkout_payload(items=[])
    )
    self.assertEqual(response.status_code, 400)

  def test_same_idempotency_key_creates_one_preference(self) -> None:
    headers = {"Idempotency-Key": "cart-7f3a"}
    first = self.client.post(
        "/checkout/pix", json=self._checkout_payload(), headers=headers
    )
    second = self.client.post(
        "/checkout/pix", json=self._checkout_payload(), headers=headers
    )
    self.assertEqual(first.status_code, 200)
    self.assertEqual(second.status_code, 200)
    self.assertEqual(
        first.json()["preferenceId"], second.json()["preferenceId"]
    )
    self.assertEqual(
        second.json()["externalReference"], first.json()["externalReference"]
    )
    self.assertLen(self.provider.preferences, 1)
    self.assertEqual(self.provider.create_calls, ["cart-7f3a", "cart-7f3a"])

  def test_distinct_attempts_get_distinct_keys(self) -> None:
    first = self.client.post("/checkout/pix", json=self._checkout_payload())
    second = self.client.post("/checkout/pix", json=self._checkout_payload())
    self.assertNotEqual(
        first.json()["externalReference"], second.json()["externalReference"]
    )
    self.assertNotEqual(
        first.json()["preferenceId"], second.json()["preferenceId"]
    )
    self.assertLen(set(self.provider.create_calls), 2)

  def test_provider_auth_failure(self) -> None:
    self.provider.next_error = UpstreamAuthError(
        "Payment provider authentication failed",
        provider_body={"message": "invalid access token"},
    )
    response = self.client.post("/checkout/pix", json=self._checkout_payload())
    self.assertEqual(response.status_code, 401)
    self.assertEqual(response.json()["code"], "UPSTREAM_AUTH_ERROR")
    self.assertNotIn("debugInfo", response.json())

  def test_provider_timeout_hides_details_in_production(self) -> None:
    self.provider.next_error = UpstreamError(
        "Payment provider timed out", retryable=True
    )
    response = self.client.post("/checkout/pix", json=self._checkout_payload())
    self.assertEqual(response.status_code, 500)
    self.assertTrue(response.json()["retryable"])
    self.assertNotIn("debugInfo", response.json())

  def test_provider_error_details_in_development(self) -> None:
    self._set_settings(
        access_token="TEST-access-token", environment="development"
    )
    self.provider.next_error = UpstreamError(
        "Payment provider returned HTTP 503",
        provider_status=503,
        provider_body={"message": "service unavailable"},
        retryable=True,
    )
    response = self.client.post("/checkout/pix", json=self._checkout_payload())
    self.assertEqual(response.status_code, 500)
    debug_info = response.json()["debugInfo"]
    self.assertEqual(debug_info["errorType"], "UpstreamError")
    self.assertEqual(debug_info["providerStatus"], 503)

  def test_malformed_checkout_body(self) -> None:
    response = self.client.post(
        "/checkout/pix",
        content="not json",
        headers={"Content-Type": "application/json"},
    )
    self.assertEqual(response.status_code, 400)
    self.assertFalse(response.json()["success"])

  # --- Webhook receiver ---

  def test_webhook_health(self) -> None:
    response = self.client.get("/webhooks/payment")
    self.assertEqual(response.status_code, 200)
    self.assertIn("timestamp", response.json())

  def test_non_payment_notification_is_acknowledged(self) -> None:
    response = self._notify("555", event_type="merchant_order")
    self.assertEqual(response.status_code, 200)
    self.assertEqual(response.json(), {"received": True})
    self.assertEmpty(self.provider.lookup_calls)
    self.assertEmpty(self._list_orders())

  def test_non_payment_notification_with_any_payload(self) -> None:
    for data in ("42", 42, ["42"], None):
      response = self.client.post(
          "/webhooks/payment", json={"type": "merchant_order", "data": data}
      )
      self.assertEqual(response.status_code, 200, response.text)
      self.assertEqual(response.json(), {"received": True})
    self.assertEmpty(self.provider.lookup_calls)

  def test_notification_without_payment_id(self) -> None:
    response = self.client.post("/webhooks/payment", json={"type": "payment"})
    self.assertEqual(response.status_code, 400)
    self.assertEqual(response.json()["error"], "PaymentIdMissing")
    self.assertEmpty(self.provider.lookup_calls)

  def test_malformed_notification(self) -> None:
    response = self.client.post("/webhooks/payment", json=["payment"])
    self.assertEqual(response.status_code, 400)

  def test_approved_payment_creates_order(self) -> None:
    self.provider.register_payment(
        "123",
        "approved",
        transaction_amount=250,
        external_reference="ORD-1001-1700000000000-abcd1234",
        metadata={
            "order_number": "ORD-1001",
            "customer_name": "Ana Souza",
            "customer_email": "ana@example.com",
        },
    )
    response = self._notify("123")
    self.assertEqual(response.status_code, 200)
    self.assertEqual(response.json(), {"received": True})

    orders = self._list_orders()
    self.assertLen(orders, 1)
    self.assertEqual(orders[0]["status"], "paid")
    self.assertEqual(orders[0]["totalPrice"], 250)
    self.assertEqual(orders[0]["paymentId"], "123")
    self.assertEqual(orders[0]["orderNumber"], "ORD-1001")

  def test_duplicate_delivery_creates_one_order(self) -> None:
    self.provider.register_payment(
        "123", "approved", transaction_amount=250, external_reference="ref-1"
    )
    self.assertEqual(self._notify("123").status_code, 200)
    self.assertEqual(self._notify(123).status_code, 200)

    self.assertLen(self._list_orders(), 1)
    self.assertEqual(self.provider.lookup_calls, ["123", "123"])

  def test_unapproved_payments_are_not_recorded(self) -> None:
    self.provider.register_payment("200", "pending", transaction_amount=10)
    self.provider.register_payment("201", "rejected", transaction_amount=10)
    for payment_id in ("200", "201"):
      response = self._notify(payment_id)
      self.assertEqual(response.status_code, 200)
      self.assertEqual(response.json(), {"received": True})
    self.assertEmpty(self._list_orders())

  def test_lookup_failure_is_acknowledged(self) -> None:
    response = self._notify("999")
    self.assertEqual(response.status_code, 200)
    self.assertEmpty(self._list_orders())

  # --- Full flow ---

  def test_checkout_to_recorded_order(self) -> None:
    """Tests checkout, payment at the provider, webhook and order lookup."""
    response = self.client.post("/checkout/pix", json=self._checkout_payload())
    self.assertEqual(response.status_code, 200)
    checkout = response.json()

    self.provider.pay_preference(checkout["preferenceId"], payment_id="777")
    response = self._notify("777")
    self.assertEqual(response.status_code, 200)

    response = self.client.get("/orders/ORD-1001")
    self.assertEqual(response.status_code, 200)
    order = response.json()
    self.assertEqual(order["status"], "paid")
    self.assertEqual(order["totalPrice"], 250)
    self.assertEqual(order["currency"], "BRL")
    self.assertEqual(order["externalReference"], checkout["externalReference"])
    self.assertEqual(order["customerEmail"], "ana@example.com")
    self.assertEqual(order["externalUserId"], "user_42")
    self.assertEqual(order["shippingAddress"]["city"], "Curitiba")
    self.assertEqual(order["paymentMethod"], "pix")

  def test_unknown_order(self) -> None:
    response = self.client.get("/orders/ORD-404")
    self.assertEqual(response.status_code, 404)
    self.assertEqual(response.json()["code"], "RESOURCE_NOT_FOUND")


if __name__ == "__main__":
  absltest.main()
