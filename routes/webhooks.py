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

"""Payment provider webhook routes.

The provider retries any delivery that does not get a 2xx answer, so every
notification we do not need to escalate is acknowledged with 200. Only a
missing payment ID (400) and a failure to record a confirmed payment (500,
raised as PersistenceError) are reported as errors.
"""

import datetime
from typing import Any

import dependencies
from enums import WebhookOutcome
from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from fastapi.responses import JSONResponse
from models import PaymentNotification
from services.webhook_service import WebhookService

router = APIRouter()


@router.post(
    "/webhooks/payment",
    response_model=dict[str, Any],
    operation_id="receive_payment_notification",
)
async def receive_payment_notification(
    notification: PaymentNotification = Body(...),
    webhook_service: WebhookService = Depends(
        dependencies.get_webhook_service
    ),
) -> Any:
  """Receive a payment notification from the provider."""
  outcome = await webhook_service.handle_notification(notification)
  if outcome == WebhookOutcome.MISSING_PAYMENT_ID:
    return JSONResponse(
        status_code=400,
        content={"received": True, "error": "PaymentIdMissing"},
    )
  return {"received": True}


@router.get(
    "/webhooks/payment",
    response_model=dict[str, Any],
    operation_id="payment_webhook_health",
)
async def payment_webhook_health() -> dict[str, Any]:
  """Liveness probe for the webhook endpoint."""
  return {
      "message": "Payment webhook is up",
      "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
  }
