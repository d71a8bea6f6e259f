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

"""PIX Checkout Server (Python/FastAPI)."""

import logging
import sys
from typing import Any, Dict, Sequence

from absl import app as absl_app
import config
from exceptions import CheckoutError
from exceptions import UpstreamAuthError
from exceptions import UpstreamError
from fastapi import FastAPI
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from routes.checkout import router as checkout_router
from routes.order import router as order_router
from routes.webhooks import router as webhooks_router
import uvicorn

# --- App Setup ---

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="PIX Checkout Service",
    version="1.0.0",
    description="Payment preference builder and payment webhook receiver",
    lifespan=config.lifespan,
)


def _diagnostics_enabled(request: Request) -> bool:
  settings = getattr(request.app.state, "settings", None)
  return bool(settings and settings.diagnostics_enabled)


@app.exception_handler(CheckoutError)
async def checkout_exception_handler(request: Request, exc: CheckoutError):
  """Converts checkout exceptions to JSON error responses."""
  content: Dict[str, Any] = {
      "success": False,
      "error": exc.message,
      "code": exc.code,
  }
  if exc.details:
    content["details"] = exc.details
  if exc.suggestion:
    content["suggestion"] = exc.suggestion
  if isinstance(exc, UpstreamError):
    content["retryable"] = exc.retryable

  if _diagnostics_enabled(request):
    debug_info: Dict[str, Any] = {"errorType": type(exc).__name__}
    if isinstance(exc, UpstreamError):
      debug_info["providerStatus"] = exc.provider_status
    if isinstance(exc, (UpstreamError, UpstreamAuthError)):
      debug_info["providerBody"] = exc.provider_body
    content["debugInfo"] = debug_info

  return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
):
  """Reports unparseable request bodies as 400."""
  logger.warning("Rejected malformed body on %s", request.url.path)
  errors = exc.errors()
  details = "; ".join(
      f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg')}"
      for e in errors
  )
  return JSONResponse(
      status_code=400,
      content={
          "success": False,
          "error": "invalid request body",
          "code": "INVALID_INPUT",
          "details": details,
          "suggestion": "Check the request payload and try again",
      },
  )


@app.exception_handler(Exception)
async def unexpected_exception_handler(request: Request, exc: Exception):
  """Hides unexpected failures behind a generic 500."""
  logger.exception("Unhandled error on %s", request.url.path)
  content: Dict[str, Any] = {
      "success": False,
      "error": "internal server error",
      "code": "INTERNAL_ERROR",
      "suggestion": "Try again in a few moments",
  }
  if _diagnostics_enabled(request):
    content["debugInfo"] = {
        "errorType": type(exc).__name__,
        "errorMessage": str(exc)[:500],
    }
  return JSONResponse(status_code=500, content=content)


app.include_router(checkout_router)
app.include_router(webhooks_router)
app.include_router(order_router)


def main(argv: Sequence[str]) -> None:
  """Main entry point for the checkout server."""
  del argv  # Unused.

  if config.FLAGS.store_db_path is None or config.FLAGS.port is None:
    logger.error("Both --store_db_path and --port must be provided.")
    print("\nUsage:")
    print(config.FLAGS.main_module_help())
    sys.exit(1)

  uvicorn.run(app, host="0.0.0.0", port=config.FLAGS.port)


if __name__ == "__main__":
  absl_app.run(main)
