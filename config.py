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

"""Shared configuration and startup logic for the checkout server.

Flags are read exactly once, at startup, into an immutable `Settings` object
which is stored on `app.state` together with the payment provider client.
Request handlers receive both through FastAPI dependencies instead of reading
process-wide state.
"""

import contextlib
import logging
import os
from typing import Optional

from absl import flags
from clients.mercado_pago import MercadoPagoClient
from clients.mock_mercado_pago import MockMercadoPagoClient
import db
from fastapi import FastAPI
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import SecretStr

FLAGS = flags.FLAGS

logger = logging.getLogger(__name__)

PRODUCTION = "production"

# Define flags only if they haven't been defined yet (to avoid duplicates
# during tests or re-imports)
try:
  flags.DEFINE_string(
      "access_token",
      os.environ.get("MERCADO_PAGO_ACCESS_TOKEN"),
      "Mercado Pago access token",
  )
  flags.DEFINE_string(
      "base_url",
      os.environ.get("PUBLIC_BASE_URL", "http://localhost:3000"),
      "Public base URL used to build redirect and notification URLs",
  )
  flags.DEFINE_string("store_db_path", None, "Path to the orders DB")
  flags.DEFINE_integer("port", None, "Port to run the server on")
  flags.DEFINE_string("currency", "BRL", "Store operating currency")
  flags.DEFINE_enum(
      "environment",
      os.environ.get("APP_ENV", PRODUCTION),
      [PRODUCTION, "development"],
      "Deployment environment; non-production adds debug info to errors",
  )
  flags.DEFINE_string(
      "provider_api_url",
      "https://api.mercadopago.com",
      "Base URL of the payment provider API",
  )
  flags.DEFINE_float(
      "provider_timeout_seconds",
      10.0,
      "Timeout for calls to the payment provider",
  )
  flags.DEFINE_string(
      "statement_descriptor",
      "LOJA ONLINE",
      "Descriptor shown on the payer's statement",
  )
  flags.DEFINE_bool(
      "use_mock_provider",
      False,
      "Use the in-memory payment provider instead of Mercado Pago",
  )
except flags.DuplicateFlagError:
  pass


class Settings(BaseModel):
  """Process-wide configuration, loaded once at startup."""

  model_config = ConfigDict(frozen=True)

  access_token: Optional[SecretStr] = None
  base_url: str = "http://localhost:3000"
  currency: str = "BRL"
  environment: str = PRODUCTION
  provider_api_url: str = "https://api.mercadopago.com"
  provider_timeout_seconds: float = 10.0
  statement_descriptor: str = "LOJA ONLINE"

  @property
  def has_credential(self) -> bool:
    return bool(self.access_token and self.access_token.get_secret_value())

  @property
  def diagnostics_enabled(self) -> bool:
    return self.environment != PRODUCTION

  def url(self, path: str) -> str:
    return f"{self.base_url.rstrip('/')}{path}"


def load_settings() -> Settings:
  """Builds the Settings object from parsed flags."""
  return Settings(
      access_token=FLAGS.access_token or None,
      base_url=FLAGS.base_url,
      currency=FLAGS.currency,
      environment=FLAGS.environment,
      provider_api_url=FLAGS.provider_api_url,
      provider_timeout_seconds=FLAGS.provider_timeout_seconds,
      statement_descriptor=FLAGS.statement_descriptor,
  )


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
  """Loads settings, opens the provider client and initializes the store."""
  # In tests the flags may be unparsed; dependencies are overridden there.
  if not FLAGS.is_parsed():
    yield
    return

  settings = load_settings()
  if not settings.has_credential:
    logger.warning(
        "No payment provider access token configured; checkout requests"
        " will fail until one is provided"
    )
  app.state.settings = settings

  if FLAGS.use_mock_provider:
    logger.info("Using the in-memory payment provider")
    app.state.provider_client = MockMercadoPagoClient()
  else:
    app.state.provider_client = MercadoPagoClient(settings)

  if FLAGS.store_db_path:
    await db.manager.init_db(FLAGS.store_db_path)
  yield
  await app.state.provider_client.close()
  await db.manager.close()
