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

"""HTTP client for the Mercado Pago REST API.

Only the two calls the server needs are implemented: creating a checkout
preference and looking up a payment. Transport and HTTP errors are translated
into the server's exception taxonomy so that callers never handle httpx
exceptions directly.
"""

import logging
from typing import Any, Dict, Optional

from exceptions import UpstreamAuthError
from exceptions import UpstreamError
import httpx

logger = logging.getLogger(__name__)


class MercadoPagoClient:
  """Client for the Mercado Pago REST API.

  One instance is created at startup and shared by all requests.
  """

  def __init__(
      self,
      settings,
      transport: Optional[httpx.AsyncBaseTransport] = None,
  ):
    headers = {"Content-Type": "application/json"}
    if settings.has_credential:
      token = settings.access_token.get_secret_value()
      headers["Authorization"] = f"Bearer {token}"
    self.client = httpx.AsyncClient(
        base_url=settings.provider_api_url,
        headers=headers,
        timeout=httpx.Timeout(settings.provider_timeout_seconds),
        transport=transport,
    )

  async def close(self) -> None:
    await self.client.aclose()

  async def create_preference(
      self, body: Dict[str, Any], idempotency_key: str
  ) -> Dict[str, Any]:
    """Creates a checkout preference.

    Args:
      body: The preference payload.
      idempotency_key: Key the provider uses to deduplicate retried requests.

    Returns:
      The created preference, including `id`, `init_point` and
      `sandbox_init_point`.

    Raises:
      UpstreamAuthError: If the provider rejects the access token.
      UpstreamError: On any other provider error or timeout.
    """
    return await self._request(
        "POST",
        "/checkout/preferences",
        json=body,
        headers={"X-Idempotency-Key": idempotency_key},
    )

  async def get_payment(self, payment_id: str) -> Dict[str, Any]:
    """Fetches the authoritative state of a payment."""
    return await self._request("GET", f"/v1/payments/{payment_id}")

  async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
    try:
      response = await self.client.request(method, path, **kwargs)
      response.raise_for_status()
      return response.json()
    except httpx.TimeoutException as e:
      logger.error("Payment provider timeout on %s %s: %s", method, path, e)
      raise UpstreamError(
          "Payment provider timed out", retryable=True
      ) from e
    except httpx.HTTPStatusError as e:
      status = e.response.status_code
      body = _safe_body(e.response)
      if status in (401, 403):
        logger.error("Payment provider rejected the credential (%d)", status)
        raise UpstreamAuthError(
            "Payment provider authentication failed", provider_body=body
        ) from e
      logger.error(
          "Payment provider error on %s %s: HTTP %d", method, path, status
      )
      raise UpstreamError(
          f"Payment provider returned HTTP {status}",
          provider_status=status,
          provider_body=body,
          retryable=status >= 500,
      ) from e
    except httpx.RequestError as e:
      logger.error("Network error calling payment provider: %s", e)
      raise UpstreamError(
          "Payment provider unreachable", retryable=True
      ) from e
    except ValueError as e:
      logger.error("Payment provider sent an invalid JSON body: %s", e)
      raise UpstreamError("Payment provider sent an invalid response") from e


def _safe_body(response: httpx.Response) -> Any:
  try:
    return response.json()
  except ValueError:
    return response.text
