#!/usr/bin/env python3
"""
Generates sample-data/achievement_template.xlsx and sample-data/payload.json
for trying out achievement-report.

Run from the repo root:
    python sample-data/generate_template.py
    achievement-report build sample-data/achievement_template.xlsx sample-data/payload.json --start 2024-01-01 --end 2024-01-02

Template layout baked in:
  Sheets "01" and "02"
    - Title row, then header row with "SR" / "RMS Items" / territory columns
    - "Colombo" and "Galle - A" territories, a "Total" column with SUM formulas
    - A "Total" row that is never treated as an item
  Sheet "Cumulative"
    - Same layout; receives the running totals of every daily record
"""

import json
from pathlib import Path

import openpyxl
from openpyxl.utils import get_column_letter

OUTPUT_DIR = Path(__file__).parent
TEMPLATE = OUTPUT_DIR / "achievement_template.xlsx"
PAYLOAD = OUTPUT_DIR / "payload.json"

ITEMS = [
    "Sugar 1kg Pack",
    "Margarine 250g",
    "Margarine 500g",
    "Baking Powder 100g",
    "Angel Yeast 500g",
]
TERRITORIES = ["Colombo", "Galle - A", "Kandy"]


def fill_sheet(ws) -> None:
    ws.append(["Achievement Report"])
    ws.append(["SR", "RMS Items", *TERRITORIES, "Total"])
    total_col = get_column_letter(len(TERRITORIES) + 3)
    last_territory_col = get_column_letter(len(TERRITORIES) + 2)
    for index, item in enumerate(ITEMS, start=1):
        row = ws.max_row + 1
        ws.append([index, item, *([None] * len(TERRITORIES)), f"=SUM(C{row}:{last_territory_col}{row})"])
    total_row = ws.max_row + 1
    ws.append([None, "Total"])
    for col in range(3, len(TERRITORIES) + 4):
        letter = get_column_letter(col)
        ws[f"{letter}{total_row}"] = f"=SUM({letter}3:{letter}{total_row - 1})"
    ws.column_dimensions["B"].width = 24
    ws.column_dimensions[total_col].width = 12


wb = openpyxl.Workbook()
ws_cumulative = wb.active
ws_cumulative.title = "Cumulative"
fill_sheet(ws_cumulative)
for day in ("01", "02"):
    fill_sheet(wb.create_sheet(day))
wb.save(TEMPLATE)

payload = {
    "code": 200,
    "message": "OK",
    "payload": {
        "achievementReportDTOs": [
            {
                "date": "2024-01-01",
                "items": [
                    {"itemName": "Suger 1Kg", "territory": "Colombo", "soldQty": 10},
                    {"itemName": "Margarine 500 gr", "territory": "Galle", "soldQty": "1,250"},
                    {"itemName": "Baking Powder 100g", "values": {"Colombo": 4, "Kandy": 6}},
                ],
            },
            {
                "date": "2024-01-02",
                "items": [
                    {"itemName": "Sugar 1kg", "territory": "Colombo (A)", "soldQty": 5},
                    {"srNo": 5, "Colombo": 2, "Kandy": 3},
                    {"itemName": "Chocolate Spread", "territory": "Colombo", "soldQty": 9},
                ],
            },
        ]
    },
}
PAYLOAD.write_text(json.dumps(payload, indent=2), encoding="utf-8")
print(f"Created: {TEMPLATE}")
print(f"Created: {PAYLOAD}")
