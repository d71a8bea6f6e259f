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

"""Custom exceptions for the checkout server."""

from typing import Any, Optional


class CheckoutError(Exception):
  """Base class for all checkout server exceptions."""

  def __init__(
      self,
      message: str,
      code: str = "INTERNAL_ERROR",
      status_code: int = 500,
      details: Optional[str] = None,
      suggestion: Optional[str] = None,
  ):
    self.message = message
    self.code = code
    self.status_code = status_code
    self.details = details
    self.suggestion = suggestion
    super().__init__(self.message)


class InvalidInputError(CheckoutError):
  """Raised when the client sent a cart or customer data we cannot use."""

  def __init__(
      self,
      message: str,
      details: Optional[str] = None,
      suggestion: Optional[str] = None,
  ):
    super().__init__(
        message,
        code="INVALID_INPUT",
        status_code=400,
        details=details,
        suggestion=suggestion,
    )


class ConfigurationError(CheckoutError):
  """Raised when the server is missing required configuration."""

  def __init__(self, message: str, details: Optional[str] = None):
    super().__init__(
        message,
        code="CONFIGURATION_ERROR",
        status_code=500,
        details=details,
        suggestion="Check the server configuration",
    )


class UpstreamAuthError(CheckoutError):
  """Raised when the payment provider rejects our credential."""

  def __init__(self, message: str, provider_body: Any = None):
    super().__init__(
        message,
        code="UPSTREAM_AUTH_ERROR",
        status_code=401,
        details="Payment provider credential is invalid or expired",
        suggestion="Check the payment provider credentials",
    )
    self.provider_body = provider_body


class UpstreamError(CheckoutError):
  """Raised when the payment provider fails or does not answer in time."""

  def __init__(
      self,
      message: str,
      provider_status: Optional[int] = None,
      provider_body: Any = None,
      retryable: bool = False,
  ):
    super().__init__(
        message,
        code="UPSTREAM_ERROR",
        status_code=500,
        details="The payment provider could not process the request",
        suggestion="Try again in a few moments",
    )
    self.provider_status = provider_status
    self.provider_body = provider_body
    self.retryable = retryable


class PersistenceError(CheckoutError):
  """Raised when a confirmed payment could not be written to the store.

  This is a paid-but-unrecorded order and must stay distinguishable from the
  other failures so that operators can reconcile it.
  """

  def __init__(
      self,
      message: str,
      payment_id: Optional[str] = None,
      external_reference: Optional[str] = None,
  ):
    super().__init__(
        message, code="PERSISTENCE_ERROR", status_code=500
    )
    self.payment_id = payment_id
    self.external_reference = external_reference


class ResourceNotFoundError(CheckoutError):
  """Raised when a requested resource is not found."""

  def __init__(self, message: str):
    super().__init__(message, code="RESOURCE_NOT_FOUND", status_code=404)
