"""
Ledger Verification Script

Checks the order ledger spreadsheet written by the Celery worker.
Run from project root: python scripts/verify.py [--data-dir data]
"""

import argparse
import os
from datetime import datetime

import pandas as pd

REQUIRED_COLUMNS = ["order_id", "order_type", "subtotal", "points_used", "total", "order_status"]


def verify_ledger(data_dir: str = "data") -> bool:
    """Verify ledger integrity after a simulation run."""
    ledger_file = os.path.join(data_dir, "orders.xlsx")

    print("=" * 60)
    print("🔍 LEDGER VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {ledger_file}")
    print("=" * 60)

    if not os.path.exists(ledger_file):
        print("\n❌ Ledger file not found!")
        print("   Start the worker, set EXPORT_ORDERS=true and run scripts/simulate.py")
        return False

    try:
        df = pd.read_excel(ledger_file, engine="openpyxl")
    except Exception as e:
        print(f"\n❌ Could not read ledger: {e}")
        return False

    ok = True
    print(f"\n📊 Total Orders: {len(df)}")

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        print(f"⚠️ Missing Columns: {missing}")
        return False
    print("✅ All required columns present")

    duplicates = int(df["order_id"].duplicated().sum())
    if duplicates:
        print(f"⚠️ {duplicates} duplicate order IDs found!")
        ok = False
    else:
        print("✅ No duplicate order IDs")

    if "ticket_number" in df.columns:
        tickets = df["ticket_number"].dropna()
        if tickets.duplicated().any():
            print("⚠️ Duplicate takeout ticket numbers!")
            ok = False
        elif len(tickets):
            print(f"✅ {len(tickets)} unique takeout tickets")

    # total = subtotal - discount, never negative
    expected = (df["subtotal"] - df.get("discount", 0)).clip(lower=0).round(2)
    mismatched = df[(df["total"].round(2) - expected).abs() > 0.005]
    if len(mismatched):
        print(f"⚠️ {len(mismatched)} orders where total != subtotal - discount")
        ok = False
    else:
        print("✅ Totals match subtotal minus discount")

    print("\n💰 REVENUE:")
    print(f"   Total: {df['total'].sum():.2f}")
    if len(df):
        print(f"   Average: {df['total'].mean():.2f}")
    print(f"   Points redeemed: {int(df['points_used'].sum())}")

    print("\n📋 RECENT ORDERS:")
    print("-" * 60)
    if len(df):
        cols = [c for c in ("order_id", "ticket_number", "order_type", "total", "order_status") if c in df.columns]
        print(df[cols].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE" if ok else "❌ VERIFICATION FOUND PROBLEMS")
    print("=" * 60)
    return ok


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Verify the order ledger")
    parser.add_argument("--data-dir", default="data", help="Ledger directory")
    args = parser.parse_args()
    raise SystemExit(0 if verify_ledger(args.data_dir) else 1)
