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

"""Order lookup routes for the checkout server."""

from typing import Any

import db
import dependencies
from exceptions import ResourceNotFoundError
from fastapi import APIRouter
from fastapi import Depends
from fastapi import Path
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter()


@router.get(
    "/orders/{order_number}",
    response_model=dict[str, Any],
    operation_id="get_order",
)
async def get_order(
    order_number: str = Path(...),
    store_session: AsyncSession = Depends(dependencies.get_store_db),
) -> dict[str, Any]:
  """Get a recorded order by its order number."""
  order = await db.get_order_by_number(store_session, order_number)
  if not order:
    raise ResourceNotFoundError("Order not found")
  return order
