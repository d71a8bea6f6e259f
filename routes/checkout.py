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

"""PIX checkout routes."""

from typing import Any, Optional

from config import Settings
import dependencies
from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from models import PixCheckoutRequest
from models import PixCheckoutResponse
from services.checkout_service import CheckoutService

router = APIRouter()


@router.post(
    "/checkout/pix",
    response_model=PixCheckoutResponse,
    operation_id="create_pix_checkout",
)
async def create_pix_checkout(
    checkout_req: PixCheckoutRequest = Body(...),
    idempotency_key: Optional[str] = Depends(dependencies.idempotency_header),
    checkout_service: CheckoutService = Depends(
        dependencies.get_checkout_service
    ),
) -> PixCheckoutResponse:
  """Create a payment preference for the cart."""
  return await checkout_service.create_pix_checkout(
      checkout_req, idempotency_key
  )


@router.get(
    "/checkout/pix",
    response_model=dict[str, Any],
    operation_id="pix_checkout_health",
)
async def pix_checkout_health(
    settings: Settings = Depends(dependencies.get_settings),
) -> dict[str, Any]:
  """Report whether the checkout endpoint can reach the provider."""
  return {
      "message": "PIX checkout endpoint is up",
      "hasCredential": settings.has_credential,
  }
