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

"""FastAPI dependencies for the checkout server.

This module contains dependency injection logic for FastAPI endpoints,
including:
- Access to the settings and provider client loaded at startup.
- Optional Idempotency-Key header extraction.
- Order store session management.
- Service instantiation (CheckoutService, WebhookService).
"""

from typing import AsyncGenerator, Optional

from config import Settings
import db
from exceptions import ConfigurationError
from fastapi import Depends
from fastapi import Header
from fastapi import Request
from services.checkout_service import CheckoutService
from services.webhook_service import WebhookService
from sqlalchemy.ext.asyncio import AsyncSession


def get_settings(request: Request) -> Settings:
  """Returns the settings loaded at startup."""
  settings = getattr(request.app.state, "settings", None)
  if settings is None:
    raise ConfigurationError("server configuration not loaded")
  return settings


def get_provider_client(request: Request):
  """Returns the shared payment provider client."""
  client = getattr(request.app.state, "provider_client", None)
  if client is None:
    raise ConfigurationError("payment provider client not initialized")
  return client


async def idempotency_header(
    idempotency_key: Optional[str] = Header(None),
) -> Optional[str]:
  """Extracts the optional Idempotency-Key header."""
  return idempotency_key or None


async def get_store_db() -> AsyncGenerator[AsyncSession, None]:
  """Dependency provider for order store sessions."""
  if db.manager.session_factory is None:
    raise ConfigurationError("order store not initialized")
  async with db.manager.session_factory() as session:
    yield session


def get_checkout_service(
    settings: Settings = Depends(get_settings),
    provider_client=Depends(get_provider_client),
) -> CheckoutService:
  """Dependency provider for CheckoutService."""
  return CheckoutService(settings, provider_client)


def get_webhook_service(
    settings: Settings = Depends(get_settings),
    provider_client=Depends(get_provider_client),
    store_session: AsyncSession = Depends(get_store_db),
) -> WebhookService:
  """Dependency provider for WebhookService."""
  return WebhookService(
      provider_client, store_session, default_currency=settings.currency
  )
