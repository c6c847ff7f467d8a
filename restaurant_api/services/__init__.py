"""
                        Services Module

Business logic shared by the HTTP layer and the background worker.

Services:
    - pricing: order subtotal and loyalty point settlement
    - orders: order placement against a store
    - catalog: menu field parsing for JSON and form submissions
    - uploads: menu photo storage
    - ledger: file-locked spreadsheet of placed orders
"""
