"""
Order Ledger Spreadsheet with Concurrency Control

Appends one row per placed order to ``<DATA_DIRECTORY>/orders.xlsx``.
Rows are written by the Celery worker, possibly from several processes,
so every read-modify-write happens under a FileLock.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Union

import pandas as pd
from filelock import FileLock, Timeout

from restaurant_api.schemas import OrderRead

logger = logging.getLogger(__name__)

LEDGER_FILENAME = "orders.xlsx"

ORDER_COLUMNS = [
    "order_id",
    "ticket_number",
    "order_type",
    "date_time",
    "table_number",
    "member_phone",
    "items",
    "note",
    "subtotal",
    "points_used",
    "discount",
    "total",
    "points_earned",
    "order_status",
    "exported_at",
]


def order_to_row(order: OrderRead) -> dict[str, Any]:
    """Flatten an order into a JSON-serializable task payload."""
    return {
        "order_id": order.id,
        "ticket_number": order.ticket_number,
        "order_type": order.order_type.value,
        "created_at": order.created_at.isoformat(),
        "table_number": order.table_number,
        "member_phone": order.member_phone,
        "items": json.dumps(
            [
                {"id": line.menu_item_id, "name": line.name, "qty": line.quantity, "price": line.unit_price}
                for line in order.lines
            ],
            ensure_ascii=False,
        ),
        "note": order.note,
        "subtotal": order.subtotal,
        "points_used": order.points_used,
        "discount": order.discount,
        "total": order.total,
        "points_earned": order.points_earned,
        "order_status": order.status.value,
    }


class LedgerExporter:
    """File-locked spreadsheet of placed orders."""

    def __init__(self, data_directory: Union[str, Path], lock_timeout: int = 30):
        self.data_dir = Path(data_directory)
        self.file = self.data_dir / LEDGER_FILENAME
        self.lock_file = self.data_dir / f"{LEDGER_FILENAME}.lock"
        self.lock_timeout = lock_timeout

    def _ensure_data_dir(self) -> None:
        """Create data directory if needed."""
        if not self.data_dir.exists():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.data_dir}")

    def _load_or_create_df(self) -> pd.DataFrame:
        """Load existing file or create new DataFrame."""
        if self.file.exists():
            return pd.read_excel(self.file, engine="openpyxl")
        return pd.DataFrame(columns=ORDER_COLUMNS)

    def export_order(self, order_data: dict[str, Any]) -> dict[str, Any]:
        """Append one order row with file locking."""
        self._ensure_data_dir()

        order_id = order_data.get("order_id", 0)
        result = {
            "success": False,
            "message": "",
            "order_id": order_id,
            "exported_at": None,
        }

        try:
            with FileLock(str(self.lock_file), timeout=self.lock_timeout):
                logger.debug(f"Lock acquired for Order #{order_id}")

                df = self._load_or_create_df()
                if "order_id" in df.columns and (df["order_id"] == order_id).any():
                    result["success"] = True
                    result["message"] = f"Order #{order_id} already exported"
                    return result

                export_time = datetime.now().isoformat()
                new_row = {
                    "order_id": order_id,
                    "ticket_number": order_data.get("ticket_number"),
                    "order_type": order_data.get("order_type", "dine_in"),
                    "date_time": order_data.get("created_at", export_time),
                    "table_number": order_data.get("table_number"),
                    "member_phone": order_data.get("member_phone"),
                    "items": order_data.get("items"),
                    "note": order_data.get("note", ""),
                    "subtotal": order_data.get("subtotal"),
                    "points_used": order_data.get("points_used", 0),
                    "discount": order_data.get("discount", 0.0),
                    "total": order_data.get("total"),
                    "points_earned": order_data.get("points_earned", 0),
                    "order_status": order_data.get("order_status"),
                    "exported_at": export_time,
                }

                df = pd.concat([df, pd.DataFrame([new_row])], ignore_index=True)
                df.to_excel(str(self.file), index=False, engine="openpyxl")

                logger.info(f"Order #{order_id} exported to ledger")

                result["success"] = True
                result["message"] = f"Order #{order_id} exported"
                result["exported_at"] = export_time

        except Timeout:
            result["message"] = f"Lock timeout ({self.lock_timeout}s)"
            logger.error(f"Lock timeout for Order #{order_id}")

        return result

    def get_all_orders(self) -> list[dict[str, Any]]:
        """Get all ledger rows."""
        if not self.file.exists():
            return []
        with FileLock(str(self.lock_file), timeout=self.lock_timeout):
            df = pd.read_excel(self.file, engine="openpyxl")
        return df.to_dict("records")

    def clear_all(self) -> bool:
        """Delete the ledger file."""
        with FileLock(str(self.lock_file), timeout=self.lock_timeout):
            existed = self.file.exists()
            self.file.unlink(missing_ok=True)
        logger.info("Ledger cleared")
        return existed
