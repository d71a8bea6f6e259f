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

"""Enumerations for the checkout server.

This module defines the enums used to represent the state of persisted orders
and the payment statuses reported by the payment provider.
"""

import enum


class OrderStatus(str, enum.Enum):
  PENDING = "pending"
  PAID = "paid"
  FAILED = "failed"


class PaymentStatus(str, enum.Enum):
  """Payment statuses as reported by the provider's payment lookup."""

  APPROVED = "approved"
  PENDING = "pending"
  AUTHORIZED = "authorized"
  IN_PROCESS = "in_process"
  IN_MEDIATION = "in_mediation"
  REJECTED = "rejected"
  CANCELLED = "cancelled"
  REFUNDED = "refunded"
  CHARGED_BACK = "charged_back"


# Statuses after which the provider will not approve the payment any more.
TERMINAL_FAILURE_STATUSES = frozenset(
    s.value
    for s in (
        PaymentStatus.REJECTED,
        PaymentStatus.CANCELLED,
        PaymentStatus.REFUNDED,
        PaymentStatus.CHARGED_BACK,
    )
)


class WebhookOutcome(str, enum.Enum):
  """What the webhook receiver did with a notification."""

  IGNORED = "ignored"
  MISSING_PAYMENT_ID = "missing_payment_id"
  LOOKUP_FAILED = "lookup_failed"
  NOT_APPROVED = "not_approved"
  DUPLICATE = "duplicate"
  ORDER_CREATED = "order_created"
