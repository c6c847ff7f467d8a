"""
Rush Hour Simulation Script

Fires a burst of concurrent orders at a running API to check that totals,
loyalty balances and takeout ticket numbers stay consistent under load.
Run from project root: python scripts/simulate.py --orders 50
"""

import argparse
import asyncio
import random
import sys
import time
from datetime import datetime
from typing import Any

import httpx

API_BASE_URL = "http://localhost:3000"
TOTAL_ORDERS = 50

MEMBER_PHONES = ["0912345678", "0922333444", "0933555666", "0955777888"]
NOTES = ["", "少辣", "不要蔥", "加麵", "湯分開裝"]


def generate_order_payload(menu_ids: list[int]) -> dict[str, Any]:
    """Random order against the live catalog."""
    items = [
        {"id": random.choice(menu_ids), "qty": random.randint(1, 3)}
        for _ in range(random.randint(1, 4))
    ]
    takeout = random.random() < 0.5
    payload: dict[str, Any] = {
        "items": items,
        "order_type": "takeout" if takeout else "dine_in",
        "note": random.choice(NOTES),
    }
    if not takeout:
        payload["table_number"] = str(random.randint(1, 12))
    if random.random() < 0.6:
        payload["member_phone"] = random.choice(MEMBER_PHONES)
        payload["use_points"] = random.choice([0, 0, 5, 20])
    return payload


async def send_order(
    client: httpx.AsyncClient,
    order_num: int,
    menu_ids: list[int]
) -> dict[str, Any]:
    payload = generate_order_payload(menu_ids)
    start_time = time.time()

    try:
        response = await client.post(f"{API_BASE_URL}/api/orders", json=payload, timeout=30.0)
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 201:
            data = response.json()
            return {
                "order_num": order_num,
                "success": True,
                "order_id": data["id"],
                "ticket_number": data.get("ticket_number"),
                "total": data["total"],
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }


async def run_simulation(num_orders: int = TOTAL_ORDERS) -> dict[str, Any]:
    print("=" * 70)
    print("🔥 RUSH HOUR SIMULATION")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        menu = (await client.get(f"{API_BASE_URL}/api/menu")).json()
        menu_ids = [item["id"] for item in menu]
        if not menu_ids:
            print("\n❌ Menu is empty, nothing to order")
            return {"total": num_orders, "successful": 0, "failed": num_orders}

        start_time = time.time()
        results = await asyncio.gather(
            *(send_order(client, i + 1, menu_ids) for i in range(num_orders))
        )
        total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]
    tickets = sorted(r["ticket_number"] for r in successful if r.get("ticket_number"))

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        revenue = sum(r["total"] for r in successful)
        print(f"\n📈 Average Response: {avg_time}s")
        print(f"💰 Total Revenue: {revenue:.2f}")

    if tickets:
        duplicates = len(tickets) != len(set(tickets))
        print(f"\n🎫 Takeout tickets: {tickets[0]}..{tickets[-1]} ({len(tickets)} issued)")
        print("⚠️ Duplicate ticket numbers!" if duplicates else "✅ Ticket numbers are unique")

    if failed:
        print("\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    print("\n" + "=" * 70)
    print("With EXPORT_ORDERS=true, run: python scripts/verify.py")
    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


async def check_health() -> bool:
    async with httpx.AsyncClient() as client:
        try:
            response = await client.get(f"{API_BASE_URL}/health")
        except httpx.HTTPError as e:
            print(f"❌ API unreachable: {e}")
            return False
    if response.status_code != 200:
        print(f"❌ Health check failed: {response.text}")
        return False
    data = response.json()
    print(f"✅ API healthy (storage: {data.get('storage')})")
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rush hour simulation")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--url", default=API_BASE_URL, help="API base URL")
    args = parser.parse_args()
    API_BASE_URL = args.url.rstrip("/")

    if not asyncio.run(check_health()):
        sys.exit(1)
    asyncio.run(run_simulation(num_orders=args.orders))
