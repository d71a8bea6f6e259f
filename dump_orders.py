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

"""Utility script to dump recorded orders.

This script reads from the order store and prints a summary of every
recorded order, including the provider payment ID it came from. It is useful
when reconciling provider payments against recorded orders.

Usage:
  uv run dump_orders.py --store_db_path=...
"""

import asyncio
import sys
from typing import Any, Dict, List

from absl import app as absl_app
from absl import flags
import db
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker

FLAGS = flags.FLAGS
try:
  flags.DEFINE_string("store_db_path", None, "Path to the orders DB")
except flags.DuplicateFlagError:
  pass


def format_order(data: Dict[str, Any]) -> List[str]:
  """Formats one order document as printable lines."""
  lines = [
      f"Order: {data.get('orderNumber')} [{data.get('status')}]",
      f"  Payment: {data.get('paymentId')} ({data.get('paymentMethod')})",
      f"  Reference: {data.get('externalReference')}",
      f"  Customer: {data.get('customerName')} <{data.get('customerEmail')}>",
      (
          f"  Total: {data.get('currency')}"
          f" {float(data.get('totalPrice') or 0):.2f}"
      ),
      f"  Created: {data.get('createdAt')}",
  ]
  address = data.get("shippingAddress")
  if address:
    street = " ".join(
        str(address[k]) for k in ("street", "number") if address.get(k)
    )
    city = ", ".join(
        str(address[k]) for k in ("city", "state") if address.get(k)
    )
    lines.append(f"  Ship to: {street} - {city}")
  return lines


async def dump_orders() -> None:
  """Queries the store and prints all orders."""
  if not FLAGS.store_db_path:
    print("Error: --store_db_path is required.")
    sys.exit(1)

  engine = create_async_engine(
      f"sqlite+aiosqlite:///{FLAGS.store_db_path}", echo=False
  )
  session_factory = sessionmaker(
      engine, expire_on_commit=False, class_=AsyncSession
  )

  try:
    async with session_factory() as session:
      orders = await db.list_orders(session)
      if not orders:
        print("No orders found.")
        return

      for order in orders:
        for line in format_order(order.data or {}):
          print(line)
        print("-" * 60)
  finally:
    await engine.dispose()


def main(argv):
  """Main entry point for the order dump script."""
  del argv
  asyncio.run(dump_orders())


if __name__ == "__main__":
  absl_app.run(main)
