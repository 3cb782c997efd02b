"""Read institution snapshots and normalize their headers."""

import csv
import sys
from collections import Counter
from pathlib import Path

from ched_chat.config import settings
from ched_chat.schemas import Institution

# Header variants seen across CHED exports, in lookup order.
HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("INSTITUTION NAME", "Name", "name"),
    "type": ("INSTITUTION TYPE", "Type", "type"),
    "city": ("MUNICIPALITY", "City", "city"),
    "province": ("PROVINCE", "Province", "province"),
    "region": ("REGION", "Region", "region"),
    "website": ("WEBSITE ADDRESS", "WEBSITE", "Website", "website"),
    "contact": ("TELEPHONE NO", "Telephone", "contact"),
}


def _clean_cell(value: object) -> str | None:
    if value is None:
        return None
    text = " ".join(str(value).split())
    return text or None


def normalize_row(row: dict) -> Institution | None:
    """Map one raw CSV row onto the canonical field set.

    Returns None for rows without an institution name.
    """
    cells = {str(key).strip(): value for key, value in row.items() if key is not None}
    fields: dict[str, str | None] = {}
    for field, headers in HEADER_ALIASES.items():
        fields[field] = None
        for header in headers:
            value = _clean_cell(cells.get(header))
            if value:
                fields[field] = value
                break
    if not fields["name"]:
        return None
    return Institution(**fields)


def read_records(path: Path) -> list[Institution]:
    records: list[Institution] = []
    with path.open("r", encoding="utf-8-sig", newline="") as f:
        for row in csv.DictReader(f):
            record = normalize_row(row)
            if record is not None:
                records.append(record)
    return records


def main():
    path = Path(sys.argv[1] if len(sys.argv) > 1 else settings.RECORDS_CSV)
    if not path.is_file():
        print(f"Records file not found: {path}")
        return

    records = read_records(path)
    by_region = Counter(record.region or "N/A" for record in records)
    for region, count in sorted(by_region.items()):
        print(f"  {region}: {count}")
    print(f"OK: Loaded {len(records)} institutions from '{path}'")


if __name__ == "__main__":
    main()
