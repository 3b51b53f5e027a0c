import csv
import io
from typing import List, Sequence

from .models import JobDTO
from .timeutils import LOCAL_UTC_OFFSET_HOURS, utc_to_local

EXPORT_FILENAME = "volunteer_jobs_export.csv"
EXPORT_HEADER = ["Date", "Title", "Location", "Start Time", "End Time", "Duration (hours)", "Tags", "Notes"]


def _local_format(value: str, fmt: str, offset_hours: float) -> str:
    local = utc_to_local(value, offset_hours)
    return local.strftime(fmt) if local is not None else ""


def build_export_rows(jobs: Sequence[JobDTO], offset_hours: float = LOCAL_UTC_OFFSET_HOURS) -> List[List[object]]:
    rows: List[List[object]] = [list(EXPORT_HEADER)]
    total_minutes = 0
    for job in jobs:
        total_minutes += job.duration or 0
        rows.append(
            [
                _local_format(job.date, "%d/%m/%Y", offset_hours),
                job.title,
                job.location_name or "",
                _local_format(job.start_time, "%H:%M", offset_hours),
                _local_format(job.end_time, "%H:%M", offset_hours),
                f"{(job.duration or 0) / 60:.2f}",
                ", ".join(job.tags),
                job.notes or "",
            ]
        )
    rows.append([])
    rows.append(["Total Hours:", "", "", "", "", f"{total_minutes / 60:.2f}", "", ""])
    rows.append(["Total Jobs:", "", "", "", "", len(jobs), "", ""])
    return rows


def build_jobs_csv(jobs: Sequence[JobDTO], offset_hours: float = LOCAL_UTC_OFFSET_HOURS) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    for row in build_export_rows(jobs, offset_hours):
        writer.writerow(row)
    return buffer.getvalue()
