"""
Row builders and database helpers shared by the test suites
"""

import csv
from datetime import datetime
from pathlib import Path
from typing import Dict, List

from models import Caregiver, Carelog, Profile

CARELOG_COLUMNS = [
    "carelog_id",
    "caregiver_id",
    "franchisor_id",
    "start_datetime",
    "end_datetime",
    "clock_in_actual_datetime",
    "clock_out_actual_datetime",
    "status",
    "general_comment_char_count",
]

CAREGIVER_COLUMNS = [
    "caregiver_id",
    "first_name",
    "last_name",
    "email",
    "phone_number",
    "gender",
    "status",
    "hourly_rate",
    "franchisor_id",
]


async def add_caregiver(db_session, first_name: str, last_name: str, **caregiver_fields) -> int:
    profile = Profile(first_name=first_name, last_name=last_name)
    db_session.add(profile)
    await db_session.flush()

    caregiver = Caregiver(profile_id=profile.id, **caregiver_fields)
    db_session.add(caregiver)
    await db_session.commit()
    return caregiver.id


async def add_carelog(db_session, caregiver_id: int, start: datetime, end: datetime, **fields) -> int:
    carelog = Carelog(caregiver_id=caregiver_id, start_datetime=start, end_datetime=end, **fields)
    db_session.add(carelog)
    await db_session.commit()
    return carelog.id


def write_csv(path: Path, columns: List[str], rows: List[Dict[str, object]], delimiter: str = ",") -> Path:
    with open(path, "w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=columns, delimiter=delimiter, extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow({column: row.get(column, "") for column in columns})
    return path


def carelog_row(index: int, caregiver_id: int, **overrides) -> Dict[str, object]:
    """A valid completed carelog scheduled on 2024-03-{index} 09:00-11:00"""
    day = f"2024-03-{index:02d}"
    row = {
        "carelog_id": f"CL-{index:03d}",
        "caregiver_id": caregiver_id,
        "start_datetime": f"{day} 09:00:00",
        "end_datetime": f"{day} 11:00:00",
        "clock_in_actual_datetime": f"{day} 09:02:00",
        "clock_out_actual_datetime": f"{day} 11:05:00",
        "status": "completed",
        "general_comment_char_count": "40",
    }
    row.update(overrides)
    return row


def caregiver_row(index: int, **overrides) -> Dict[str, object]:
    row = {
        "caregiver_id": f"EXT-{index:03d}",
        "first_name": f"First{index}",
        "last_name": f"Last{index}",
        "email": f"caregiver{index}@example.com",
        "phone_number": "(555) 010-0000",
        "gender": "F",
        "status": "active",
        "hourly_rate": "$21.50",
    }
    row.update(overrides)
    return row
