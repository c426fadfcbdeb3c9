"""
Purpose: Core data models for the nurses domain.
What it does:
Defines the structure of a bookable nurse (rates, offered services, stats, service radius)
without relying on any storage schema. Nurse records are owned and updated by the nurse's
own client; the matching engine only reads them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from geo import LatLon


@dataclass(frozen=True)
class SpecialtyRate:
    name: str  # 'wound-care', 'injection', 'general'
    rate: float


@dataclass(frozen=True)
class NurseStats:
    rating: float = 0.0  # 0-5
    total_bookings: int = 0
    average_response_minutes: float = 0.0
    completion_rate: float = 0.0


@dataclass(frozen=True)
class NurseProfile:
    """
    A read-only snapshot of a nurse at a specific point in time.
    """
    id: str
    name: str
    is_online: bool
    hourly_rate: float

    location: Optional[LatLon] = None  # None means unscored on distance
    qualification: str = ""
    avatar_url: str = ""

    specialty_rates: Tuple[SpecialtyRate, ...] = ()
    services: Tuple[str, ...] = ()  # offered service tags without a dedicated rate
    stats: NurseStats = field(default_factory=NurseStats)

    service_radius_km: Optional[float] = None
    emergency_rate: Optional[float] = None
    next_available: Optional[str] = None

    def offered_services(self) -> Tuple[str, ...]:
        """
        Every service-type tag this nurse offers (specialties first, stored order).
        """
        tags = [s.name for s in self.specialty_rates]
        for tag in self.services:
            if tag not in tags:
                tags.append(tag)
        return tuple(tags)

    def offers(self, service_type: str) -> bool:
        # exact, case-sensitive tag match
        return service_type in self.offered_services()

    def specialty_rate(self, service_type: str) -> Optional[float]:
        for specialty in self.specialty_rates:
            if specialty.name == service_type:
                return specialty.rate
        return None

    @classmethod
    def new(
        cls,
        nurse_id: str,
        name: str,
        *,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
        is_online: bool = True,
        hourly_rate: float = 0.0,
        specialties: Optional[Dict[str, float]] = None,
        services: Tuple[str, ...] = (),
        rating: float = 0.0,
        average_response_minutes: float = 0.0,
        service_radius_km: Optional[float] = None,
        qualification: str = "",
    ) -> NurseProfile:
        location = (lat, lon) if lat is not None and lon is not None else None

        return cls(
            id=nurse_id,
            name=name,
            is_online=is_online,
            hourly_rate=hourly_rate,
            location=location,
            qualification=qualification,
            specialty_rates=tuple(SpecialtyRate(n, r) for n, r in (specialties or {}).items()),
            services=tuple(services),
            stats=NurseStats(rating=rating, average_response_minutes=average_response_minutes),
            service_radius_km=service_radius_km,
        )

    @classmethod
    def from_document(cls, doc_id: str, doc: Dict[str, Any]) -> NurseProfile:
        """
        Build a NurseProfile from a stored 'nurses' record (camelCase shape).
        Missing sections are treated as "unknown", never as an error.
        """
        availability = doc.get("availability") or {}
        rates = doc.get("rates") or {}
        stats = doc.get("stats") or {}
        location = doc.get("location")

        position = None
        if location and location.get("latitude") is not None and location.get("longitude") is not None:
            position = (float(location["latitude"]), float(location["longitude"]))

        radius = availability.get("serviceRadius")

        return cls(
            id=doc_id,
            name=doc.get("name", ""),
            is_online=bool(availability.get("isOnline", False)),
            hourly_rate=float(rates.get("hourlyRate") or 0.0),
            location=position,
            qualification=doc.get("qualification", ""),
            avatar_url=doc.get("avatarUrl", ""),
            specialty_rates=tuple(
                SpecialtyRate(name=s["name"], rate=float(s["rate"]))
                for s in rates.get("specialties") or []
                if s.get("name") is not None and s.get("rate") is not None
            ),
            services=tuple(doc.get("services") or ()),
            stats=NurseStats(
                rating=float(stats.get("rating") or 0.0),
                total_bookings=int(stats.get("totalBookings") or 0),
                average_response_minutes=float(stats.get("averageResponseTime") or 0.0),
                completion_rate=float(stats.get("completionRate") or 0.0),
            ),
            service_radius_km=float(radius) if radius is not None else None,
            emergency_rate=rates.get("emergencyRate"),
            next_available=doc.get("nextAvailable"),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "qualification": self.qualification,
            "avatarUrl": self.avatar_url,
            "location": (
                {"latitude": self.location[0], "longitude": self.location[1]}
                if self.location is not None else None
            ),
            "nextAvailable": self.next_available,
            "availability": {
                "isOnline": self.is_online,
                "serviceRadius": self.service_radius_km,
            },
            "rates": {
                "hourlyRate": self.hourly_rate,
                "emergencyRate": self.emergency_rate,
                "specialties": [{"name": s.name, "rate": s.rate} for s in self.specialty_rates],
            },
            "services": list(self.services),
            "stats": {
                "rating": self.stats.rating,
                "totalBookings": self.stats.total_bookings,
                "averageResponseTime": self.stats.average_response_minutes,
                "completionRate": self.stats.completion_rate,
            },
        }
