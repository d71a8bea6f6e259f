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

"""Order document store for the checkout server.

This module provides the schema definition, session management and
asynchronous data access helpers for persisted orders. Orders are stored as
JSON documents using SQLAlchemy with SQLite (via aiosqlite).

Key features include:
- `DatabaseManager`: Handles asynchronous engine initialization and session
  factory setup.
- WAL Mode: Automatically enables SQLite Write-Ahead Logging so concurrent
  webhook deliveries do not block each other on reads.
- A unique `payment_id` column, which guarantees that a payment produces at
  most one order even when notifications are delivered concurrently.
"""

import datetime
import logging
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
import uuid

from sqlalchemy import Column
from sqlalchemy import JSON
from sqlalchemy import select
from sqlalchemy import String
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

logger = logging.getLogger(__name__)

StoreBase = declarative_base()


class DatabaseManager:
  """Manages the store engine and sessions without using global variables."""

  def __init__(self) -> None:
    self.engine: Optional[AsyncEngine] = None
    self.session_factory: Optional[sessionmaker] = None

  async def init_db(self, path: str) -> None:
    """Initializes the database engine and creates tables."""
    url = f"sqlite+aiosqlite:///{path}"
    self.engine = create_async_engine(url, echo=False)

    async with self.engine.connect() as conn:
      await conn.execute(text("PRAGMA journal_mode=WAL"))

    self.session_factory = sessionmaker(
        self.engine, expire_on_commit=False, class_=AsyncSession
    )

    async with self.engine.begin() as conn:
      await conn.run_sync(StoreBase.metadata.create_all)
    logger.info("Order store ready at %s", path)

  async def close(self) -> None:
    """Closes the database engine."""
    if self.engine:
      await self.engine.dispose()


# Global manager instance (to be initialized via lifespan)
manager = DatabaseManager()


class Order(StoreBase):
  __tablename__ = "orders"

  id = Column(String, primary_key=True)
  payment_id = Column(String, unique=True, nullable=False)
  order_number = Column(String, index=True)
  status = Column(String)
  created_at = Column(String)
  data = Column(JSON)


# --- Data Access Helpers ---


async def get_order_by_payment_id(
    session: AsyncSession, payment_id: str
) -> Optional[Dict[str, Any]]:
  """Retrieves the order created for a provider payment, if any."""
  result = await session.execute(
      select(Order).where(Order.payment_id == payment_id)
  )
  order = result.scalar_one_or_none()
  if order:
    return order.data
  return None


async def get_order_by_number(
    session: AsyncSession, order_number: str
) -> Optional[Dict[str, Any]]:
  """Retrieves the most recent order for an order number.

  Args:
    session: The database session to use.
    order_number: The caller-supplied order number.

  Returns:
    The order document if found, otherwise None.
  """
  result = await session.execute(
      select(Order)
      .where(Order.order_number == order_number)
      .order_by(Order.created_at.desc())
  )
  order = result.scalars().first()
  if order:
    return order.data
  return None


async def list_orders(session: AsyncSession) -> List[Order]:
  """Retrieves all orders, oldest first."""
  result = await session.execute(select(Order).order_by(Order.created_at))
  return list(result.scalars().all())


def add_order(session: AsyncSession, order_obj: Dict[str, Any]) -> str:
  """Adds a new order document to the session and returns its ID.

  The caller commits; a second order for the same payment fails the commit
  with an IntegrityError.
  """
  order_id = str(uuid.uuid4())
  session.add(
      Order(
          id=order_id,
          payment_id=order_obj["paymentId"],
          order_number=order_obj.get("orderNumber"),
          status=order_obj.get("status"),
          created_at=order_obj.get("createdAt")
          or datetime.datetime.now(datetime.timezone.utc).isoformat(),
          data={**order_obj, "id": order_id},
      )
  )
  return order_id
