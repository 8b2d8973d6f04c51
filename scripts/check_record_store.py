#!/usr/bin/env python3
"""
Verify the Supabase connection and the images table layout.

Requires the package to be installed (pip install -e .), then: python scripts/check_record_store.py
"""

import json
import sys

import requests

from deepshare_ip import config
from deepshare_ip.services import records_service


def main() -> int:
    print("\nSupabase Connection Check\n")

    if not config.SUPABASE_URL:
        print("SUPABASE_URL not found in .env")
        print("   Add: SUPABASE_URL=https://your-project.supabase.co\n")
        return 1
    if not config.SUPABASE_KEY:
        print("SUPABASE_SERVICE_ROLE_KEY not found in .env")
        print("   Add: SUPABASE_SERVICE_ROLE_KEY=your_key_here\n")
        return 1

    print(f"URL: {config.SUPABASE_URL}")
    print(f"Key: {config.SUPABASE_KEY[:30]}...\n")
    print(f"Testing connection to {config.SUPABASE_TABLE} table...")

    try:
        report = records_service.inspect_table()
    except requests.exceptions.RequestException as e:
        print(f"Connection failed: {e}")
        if getattr(e, "response", None) is not None:
            print(f"Status: {e.response.status_code}")
            print(f"Response: {e.response.text}")
        print("\nPossible issues:")
        print("1. Wrong Supabase URL or API key")
        print(f"2. Table \"{config.SUPABASE_TABLE}\" doesn't exist")
        print("3. RLS policies blocking access (use SERVICE_ROLE_KEY)\n")
        return 1

    print("Connection successful!\n")
    sample = report["sample"]
    if sample is None:
        print("Table is empty. Columns to verify:")
        for column in records_service.RECORD_COLUMNS:
            print(f"   - {column}")
        print("")
        return 0

    print("Sample row:")
    print(json.dumps(sample, indent=2))

    if not report["missing_columns"]:
        print("\nAll expected columns exist. Ready to update database.\n")
        return 0

    for column in report["missing_columns"]:
        print(f"\nColumn \"{column}\" not found in table. Run this SQL in Supabase:")
        print(f"   ALTER TABLE {config.SUPABASE_TABLE} ADD COLUMN {column} TEXT;")
    print("")
    return 1


if __name__ == "__main__":
    sys.exit(main())
