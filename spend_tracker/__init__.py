"""
Spend Tracker - Source Package

Personal expense tracking backed by Google Sheets. A central registry
spreadsheet maps every user to their own private ledger spreadsheet.

DESIGN PRINCIPLES:
1. The spreadsheet is the durable store, the code holds no state between requests
2. Parse raw rows into typed models at the boundary, once
3. Never silently drop a record - surface it for correction
4. Every access decision goes through the registry
5. Storage and document parsing are swappable
"""

__version__ = "1.0.0"
__author__ = "Spend Tracker Team"
