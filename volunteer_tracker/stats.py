"""
Job statistics for the dashboard.

Everything here is a pure read-and-summarize pass over one user's jobs; the
caller is responsible for scoping the collection to the requesting user.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from .models import JobDTO
from .timeutils import LOCAL_UTC_OFFSET_HOURS, format_instant, local_day_key, parse_instant

logger = logging.getLogger(__name__)

RECENT_JOBS_LIMIT = 8
UNTAGGED = "Untagged"


def _bucket(minutes: int, count: int) -> Dict[str, object]:
    return {"minutes": minutes, "count": count}


def compute_job_statistics(
    jobs: Iterable[JobDTO],
    offset_hours: float = LOCAL_UTC_OFFSET_HOURS,
    recent_limit: int = RECENT_JOBS_LIMIT,
) -> Dict[str, object]:
    jobs = list(jobs)
    total_minutes = 0
    days: Dict[str, int] = {}
    by_location: Dict[Optional[int], Dict[str, object]] = {}
    location_names: Dict[Optional[int], Optional[str]] = {}
    by_tag: Dict[str, Dict[str, object]] = {}
    by_month: Dict[Tuple[int, int], Dict[str, object]] = {}
    dated: List[Tuple[Optional[datetime], JobDTO]] = []

    for job in jobs:
        minutes = job.duration or 0
        total_minutes += minutes

        loc = by_location.setdefault(job.location_id, _bucket(0, 0))
        loc["minutes"] += minutes
        loc["count"] += 1
        if location_names.get(job.location_id) is None:
            location_names[job.location_id] = job.location_name

        for tag in job.tags or [UNTAGGED]:
            entry = by_tag.setdefault(tag, _bucket(0, 0))
            entry["minutes"] += minutes
            entry["count"] += 1

        parsed = parse_instant(job.date)
        dated.append((parsed, job))
        if parsed is None:
            logger.debug("Skipping job %s with unparseable date %r", job.id, job.date)
            continue

        day = local_day_key(parsed, offset_hours)
        if day is not None:
            days[day] = days.get(day, 0) + 1
        else:
            logger.debug("Skipping job %s whose local day is out of range", job.id)

        month = by_month.setdefault((parsed.year, parsed.month), _bucket(0, 0))
        month["minutes"] += minutes
        month["count"] += 1

    for day, count in sorted(days.items()):
        logger.debug("Local day %s: %d jobs", day, count)

    total_hours = total_minutes / 60 if jobs else 0

    stats = {
        "totalJobs": len(jobs),
        "totalHours": total_hours,
        "uniqueDays": len(days),
        "hoursByLocation": [
            {
                "locationId": location_id,
                "locationName": location_names.get(location_id),
                "hours": bucket["minutes"] / 60,
                "count": bucket["count"],
            }
            for location_id, bucket in by_location.items()
        ],
        "hoursByTag": [
            {"tag": tag, "hours": bucket["minutes"] / 60, "count": bucket["count"]}
            for tag, bucket in by_tag.items()
        ],
        "recentJobs": _recent_jobs(dated, recent_limit),
        "monthlyStats": [
            {
                "yearMonth": f"{year}-{month:02d}",
                "hours": bucket["minutes"] / 60,
                "count": bucket["count"],
            }
            for (year, month), bucket in sorted(by_month.items(), reverse=True)
        ],
    }
    logger.info(
        "Job statistics calculated: %d jobs, %.2f hours, %d unique days",
        stats["totalJobs"],
        total_hours,
        stats["uniqueDays"],
    )
    return stats


def _recent_jobs(dated: List[Tuple[Optional[datetime], JobDTO]], limit: int) -> List[Dict[str, object]]:
    # sorted() is stable with reverse=True, so equal dates keep input order.
    ordered = sorted(
        dated,
        key=lambda pair: (pair[0] is not None, pair[0] or datetime.min),
        reverse=True,
    )
    recent = []
    for parsed, job in ordered[:limit]:
        recent.append(
            {
                "id": job.id,
                "title": job.title,
                "date": format_instant(parsed) if parsed is not None else job.date,
                "duration": job.duration,
                "locationName": job.location_name,
            }
        )
    return recent
