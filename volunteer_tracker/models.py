"""
Record types and the SQL that loads and stores them.

Every query that returns user data takes the owning ``user_id``; the single-record
fetchers look up by id only so callers can tell "missing" from "not yours".
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .db import get_db
from .timeutils import format_instant, parse_instant, utc_now, utc_now_iso


def touch_timestamp(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Stamp ``updated_at`` on a set of columns about to be written."""
    fields["updated_at"] = utc_now_iso()
    return fields


def _load_list(raw: Optional[str]) -> List[Any]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except ValueError:
        return []
    return value if isinstance(value, list) else []


@dataclass
class JobDTO:
    id: int
    user_id: int
    title: str
    date: str
    start_time: str
    end_time: str
    duration: int
    location_id: Optional[int]
    organization_id: Optional[int]
    description: str = ""
    notes: str = ""
    tags: List[str] = field(default_factory=list)
    photos: List[Dict[str, Any]] = field(default_factory=list)
    location_name: Optional[str] = None
    location_address: Optional[str] = None
    organization_name: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "JobDTO":
        keys = row.keys()
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            description=row["description"],
            notes=row["notes"],
            date=row["date"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            duration=row["duration"],
            tags=_load_list(row["tags"]),
            photos=_load_list(row["photos"]),
            location_id=row["location_id"],
            organization_id=row["organization_id"],
            location_name=row["location_name"] if "location_name" in keys else None,
            location_address=row["location_address"] if "location_address" in keys else None,
            organization_name=row["organization_name"] if "organization_name" in keys else None,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def to_json(self) -> Dict[str, Any]:
        location = None
        if self.location_name is not None:
            location = {"id": self.location_id, "name": self.location_name, "address": self.location_address}
        organization = None
        if self.organization_name is not None:
            organization = {"id": self.organization_id, "name": self.organization_name}
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "notes": self.notes,
            "date": self.date,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
            "tags": list(self.tags),
            "location": location,
            "organization": organization,
            "photos": list(self.photos),
            "user": self.user_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class LocationDTO:
    id: int
    user_id: int
    name: str
    address: str = ""
    longitude: Optional[float] = None
    latitude: Optional[float] = None
    notes: str = ""
    photos: List[Dict[str, Any]] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "LocationDTO":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            address=row["address"],
            longitude=row["longitude"],
            latitude=row["latitude"],
            notes=row["notes"],
            photos=_load_list(row["photos"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @property
    def has_coordinates(self) -> bool:
        return self.longitude is not None and self.latitude is not None

    def to_json(self) -> Dict[str, Any]:
        coordinates = None
        if self.has_coordinates:
            # GeoJSON order is [longitude, latitude]
            coordinates = {"type": "Point", "coordinates": [self.longitude, self.latitude]}
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "coordinates": coordinates,
            "notes": self.notes,
            "photos": list(self.photos),
            "user": self.user_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class OrganizationDTO:
    id: int
    user_id: int
    name: str
    description: str = ""
    contact_name: str = ""
    contact_email: str = ""
    contact_phone: str = ""
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "OrganizationDTO":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            description=row["description"],
            contact_name=row["contact_name"],
            contact_email=row["contact_email"],
            contact_phone=row["contact_phone"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "contact": {
                "name": self.contact_name,
                "email": self.contact_email,
                "phone": self.contact_phone,
            },
            "user": self.user_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


def build_photo(payload: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """Return a photo record, or None when no usable url was supplied."""
    url = payload.get("url")
    if not isinstance(url, str) or not url.strip():
        return None
    caption = payload.get("caption") or ""
    taken_at = parse_instant(payload.get("takenAt")) or utc_now()
    return {
        "id": uuid.uuid4().hex,
        "url": url.strip(),
        "caption": str(caption).strip(),
        "takenAt": format_instant(taken_at),
    }


# Users


def user_to_json(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "email": row["email"],
        "createdAt": row["created_at"],
    }


def get_user_by_id(user_id: int) -> Optional[sqlite3.Row]:
    return get_db().execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()


def get_user_by_email(email: str) -> Optional[sqlite3.Row]:
    return get_db().execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()


def user_exists(email: str, exclude_id: Optional[int] = None) -> bool:
    row = get_db().execute(
        "SELECT 1 FROM users WHERE email = ? AND id != ?",
        (email, exclude_id if exclude_id is not None else -1),
    ).fetchone()
    return row is not None


def create_user(name: str, email: str, password_hash: str) -> int:
    now = utc_now_iso()
    db = get_db()
    cur = db.execute(
        "INSERT INTO users (email, name, password_hash, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
        (email, name, password_hash, now, now),
    )
    db.commit()
    return cur.lastrowid


def update_user(user_id: int, name: str, email: str) -> None:
    fields = touch_timestamp({"name": name, "email": email})
    db = get_db()
    db.execute(
        "UPDATE users SET name = ?, email = ?, updated_at = ? WHERE id = ?",
        (fields["name"], fields["email"], fields["updated_at"], user_id),
    )
    db.commit()


# Jobs

JOB_SELECT = """
    SELECT j.*,
           l.name AS location_name, l.address AS location_address,
           o.name AS organization_name
    FROM jobs j
    LEFT JOIN locations l ON l.id = j.location_id
    LEFT JOIN organizations o ON o.id = j.organization_id
"""


def fetch_job(job_id: int) -> Optional[JobDTO]:
    row = get_db().execute(JOB_SELECT + " WHERE j.id = ?", (job_id,)).fetchone()
    if row is None:
        return None
    return JobDTO.from_row(row)


def list_jobs(
    user_id: int,
    location_id: Optional[int] = None,
    organization_id: Optional[int] = None,
    newest_first: bool = True,
) -> List[JobDTO]:
    clauses = ["j.user_id = ?"]
    params: List[Any] = [user_id]
    if location_id is not None:
        clauses.append("j.location_id = ?")
        params.append(location_id)
    if organization_id is not None:
        clauses.append("j.organization_id = ?")
        params.append(organization_id)
    order = "j.date DESC, j.id ASC" if newest_first else "j.id ASC"
    rows = get_db().execute(
        f"{JOB_SELECT} WHERE {' AND '.join(clauses)} ORDER BY {order}",
        params,
    ).fetchall()
    return [JobDTO.from_row(row) for row in rows]


def filter_jobs(
    user_id: int,
    start: Optional[str] = None,
    end_before: Optional[str] = None,
    location_id: Optional[int] = None,
    tags: Optional[Sequence[str]] = None,
) -> List[JobDTO]:
    """Jobs with ``start <= date < end_before`` at a location carrying any of ``tags``."""
    clauses = ["j.user_id = ?"]
    params: List[Any] = [user_id]
    if start is not None:
        clauses.append("j.date >= ?")
        params.append(start)
    if end_before is not None:
        clauses.append("j.date < ?")
        params.append(end_before)
    if location_id is not None:
        clauses.append("j.location_id = ?")
        params.append(location_id)
    rows = get_db().execute(
        f"{JOB_SELECT} WHERE {' AND '.join(clauses)} ORDER BY j.date DESC, j.id ASC",
        params,
    ).fetchall()
    jobs = [JobDTO.from_row(row) for row in rows]
    if tags:
        wanted = set(tags)
        jobs = [job for job in jobs if wanted.intersection(job.tags)]
    return jobs


def insert_job(user_id: int, cleaned: Mapping[str, Any]) -> int:
    now = utc_now_iso()
    db = get_db()
    cur = db.execute(
        """
        INSERT INTO jobs
        (user_id, title, description, notes, date, start_time, end_time, duration,
         tags, location_id, organization_id, photos, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            user_id,
            cleaned["title"],
            cleaned["description"],
            cleaned["notes"],
            cleaned["date"],
            cleaned["start_time"],
            cleaned["end_time"],
            cleaned["duration"],
            json.dumps(cleaned["tags"]),
            cleaned["location_id"],
            cleaned["organization_id"],
            json.dumps(cleaned.get("photos", [])),
            now,
            now,
        ),
    )
    db.commit()
    return cur.lastrowid


def update_job(job_id: int, user_id: int, cleaned: Dict[str, Any]) -> None:
    fields = touch_timestamp(dict(cleaned))
    db = get_db()
    db.execute(
        """
        UPDATE jobs
        SET title = ?, description = ?, notes = ?, date = ?, start_time = ?, end_time = ?,
            duration = ?, tags = ?, location_id = ?, organization_id = ?, updated_at = ?
        WHERE id = ? AND user_id = ?
        """,
        (
            fields["title"],
            fields["description"],
            fields["notes"],
            fields["date"],
            fields["start_time"],
            fields["end_time"],
            fields["duration"],
            json.dumps(fields["tags"]),
            fields["location_id"],
            fields["organization_id"],
            fields["updated_at"],
            job_id,
            user_id,
        ),
    )
    db.commit()


def set_job_photos(job_id: int, photos: List[Dict[str, Any]]) -> None:
    fields = touch_timestamp({"photos": json.dumps(photos)})
    db = get_db()
    db.execute(
        "UPDATE jobs SET photos = ?, updated_at = ? WHERE id = ?",
        (fields["photos"], fields["updated_at"], job_id),
    )
    db.commit()


def delete_job(job_id: int, user_id: int) -> None:
    db = get_db()
    db.execute("DELETE FROM jobs WHERE id = ? AND user_id = ?", (job_id, user_id))
    db.commit()


# Locations


def fetch_location(location_id: int) -> Optional[LocationDTO]:
    row = get_db().execute("SELECT * FROM locations WHERE id = ?", (location_id,)).fetchone()
    if row is None:
        return None
    return LocationDTO.from_row(row)


def list_locations(user_id: int) -> List[LocationDTO]:
    rows = get_db().execute(
        "SELECT * FROM locations WHERE user_id = ? ORDER BY name, id",
        (user_id,),
    ).fetchall()
    return [LocationDTO.from_row(row) for row in rows]


def insert_location(user_id: int, cleaned: Mapping[str, Any]) -> int:
    now = utc_now_iso()
    db = get_db()
    cur = db.execute(
        """
        INSERT INTO locations
        (user_id, name, address, longitude, latitude, notes, photos, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, '[]', ?, ?)
        """,
        (
            user_id,
            cleaned["name"],
            cleaned["address"],
            cleaned["longitude"],
            cleaned["latitude"],
            cleaned["notes"],
            now,
            now,
        ),
    )
    db.commit()
    return cur.lastrowid


def update_location(location_id: int, user_id: int, cleaned: Dict[str, Any]) -> None:
    fields = touch_timestamp(dict(cleaned))
    db = get_db()
    db.execute(
        """
        UPDATE locations
        SET name = ?, address = ?, longitude = ?, latitude = ?, notes = ?, updated_at = ?
        WHERE id = ? AND user_id = ?
        """,
        (
            fields["name"],
            fields["address"],
            fields["longitude"],
            fields["latitude"],
            fields["notes"],
            fields["updated_at"],
            location_id,
            user_id,
        ),
    )
    db.commit()


def set_location_photos(location_id: int, photos: List[Dict[str, Any]]) -> None:
    fields = touch_timestamp({"photos": json.dumps(photos)})
    db = get_db()
    db.execute(
        "UPDATE locations SET photos = ?, updated_at = ? WHERE id = ?",
        (fields["photos"], fields["updated_at"], location_id),
    )
    db.commit()


def delete_location(location_id: int, user_id: int) -> None:
    db = get_db()
    db.execute("DELETE FROM locations WHERE id = ? AND user_id = ?", (location_id, user_id))
    db.commit()


# Organizations


def fetch_organization(organization_id: int) -> Optional[OrganizationDTO]:
    row = get_db().execute("SELECT * FROM organizations WHERE id = ?", (organization_id,)).fetchone()
    if row is None:
        return None
    return OrganizationDTO.from_row(row)


def list_organizations(user_id: int) -> List[OrganizationDTO]:
    rows = get_db().execute(
        "SELECT * FROM organizations WHERE user_id = ? ORDER BY name, id",
        (user_id,),
    ).fetchall()
    return [OrganizationDTO.from_row(row) for row in rows]


def insert_organization(user_id: int, cleaned: Mapping[str, Any]) -> int:
    now = utc_now_iso()
    db = get_db()
    cur = db.execute(
        """
        INSERT INTO organizations
        (user_id, name, description, contact_name, contact_email, contact_phone, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            user_id,
            cleaned["name"],
            cleaned["description"],
            cleaned["contact_name"],
            cleaned["contact_email"],
            cleaned["contact_phone"],
            now,
            now,
        ),
    )
    db.commit()
    return cur.lastrowid


def update_organization(organization_id: int, user_id: int, cleaned: Dict[str, Any]) -> None:
    fields = touch_timestamp(dict(cleaned))
    db = get_db()
    db.execute(
        """
        UPDATE organizations
        SET name = ?, description = ?, contact_name = ?, contact_email = ?, contact_phone = ?, updated_at = ?
        WHERE id = ? AND user_id = ?
        """,
        (
            fields["name"],
            fields["description"],
            fields["contact_name"],
            fields["contact_email"],
            fields["contact_phone"],
            fields["updated_at"],
            organization_id,
            user_id,
        ),
    )
    db.commit()


def delete_organization(organization_id: int, user_id: int) -> None:
    db = get_db()
    db.execute("DELETE FROM organizations WHERE id = ? AND user_id = ?", (organization_id, user_id))
    db.commit()
