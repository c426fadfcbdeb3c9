"""
Purpose: Domain models for patients.
What it does:
- PatientProfile: identity + contact info, as supplied by the identity provider / patients collection.
- MatchingPreferences: optional constraints a patient applies to nurse matching.

Preferences are optional at every level: a missing object, or a missing field within it,
means "no constraint", never a match failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

DEFAULT_MAX_DISTANCE_KM = 10.0


@dataclass(frozen=True)
class MatchingPreferences:
    max_distance_km: Optional[float] = DEFAULT_MAX_DISTANCE_KM
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    preferred_specialties: Tuple[str, ...] = ()

    def has_price_range(self) -> bool:
        return self.price_min is not None or self.price_max is not None

    @classmethod
    def from_document(cls, doc: Optional[Dict[str, Any]]) -> Optional[MatchingPreferences]:
        if not doc:
            return None

        price_range = doc.get("priceRange") or {}
        return cls(
            max_distance_km=doc.get("maxDistance", DEFAULT_MAX_DISTANCE_KM),
            price_min=price_range.get("min"),
            price_max=price_range.get("max"),
            preferred_specialties=tuple(doc.get("preferredSpecialties") or ()),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "maxDistance": self.max_distance_km,
            "priceRange": {"min": self.price_min, "max": self.price_max},
            "preferredSpecialties": list(self.preferred_specialties),
        }


@dataclass(frozen=True)
class PatientProfile:
    id: str
    name: str
    contact: str = ""
    email: str = ""
    avatar_url: str = ""
    allergies: List[str] = field(default_factory=list)
    preferences: Optional[MatchingPreferences] = None

    @classmethod
    def from_document(cls, doc_id: str, doc: Dict[str, Any]) -> PatientProfile:
        return cls(
            id=doc_id,
            name=doc.get("name", ""),
            contact=doc.get("contact", ""),
            email=doc.get("email", ""),
            avatar_url=doc.get("avatarUrl", ""),
            allergies=list(doc.get("allergies") or []),
            preferences=MatchingPreferences.from_document(doc.get("preferences")),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "contact": self.contact,
            "email": self.email,
            "avatarUrl": self.avatar_url,
            "allergies": list(self.allergies),
            "preferences": self.preferences.to_document() if self.preferences else None,
        }
