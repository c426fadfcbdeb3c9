import pytest
from datetime import datetime, timedelta, timezone

from bookings.models import ServiceRequestInput
from bookings.repository import NURSES, PATIENTS
from dispatch.dispatcher import Dispatcher
from notifications.sender import LoggingNotificationSender
from nurses.models import NurseProfile
from nurses.policy import multi_offer_policy, single_offer_policy
from patients.models import MatchingPreferences, PatientProfile
from store.document_store import InMemoryDocumentStore

T0 = datetime(2026, 11, 2, 8, 0, tzinfo=timezone.utc)
PATIENT_LOCATION = (-17.8292, 31.0522)
KM = 1 / 111.19


class Clock:
    """Injectable now() so tests can move time past offer deadlines."""

    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def seed_nurses(store):
    lat, lon = PATIENT_LOCATION
    nurses = [
        NurseProfile.new("nurse_a", "Tendai", lat=lat + 1 * KM, lon=lon, hourly_rate=40,
                         specialties={"general": 40}, rating=4.9, average_response_minutes=5),
        NurseProfile.new("nurse_b", "Rudo", lat=lat + 3 * KM, lon=lon, hourly_rate=45,
                         specialties={"general": 45}, rating=4.5, average_response_minutes=10),
        NurseProfile.new("nurse_c", "Farai", lat=lat + 5 * KM, lon=lon, hourly_rate=50,
                         services=("general",), rating=4.0, average_response_minutes=20),
        NurseProfile.new("nurse_offline", "Nyasha", lat=lat, lon=lon, is_online=False, hourly_rate=30,
                         specialties={"general": 30}, rating=5.0),
    ]
    for nurse in nurses:
        store.put(NURSES, nurse.id, nurse.to_document())
    return nurses


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store():
    store = InMemoryDocumentStore()
    patient = PatientProfile(
        id="patient_1",
        name="Chipo Moyo",
        email="chipo@example.com",
        preferences=MatchingPreferences(max_distance_km=10, price_min=20, price_max=100),
    )
    store.put(PATIENTS, patient.id, patient.to_document())
    seed_nurses(store)
    return store


@pytest.fixture
def notifier():
    return LoggingNotificationSender()


@pytest.fixture
def dispatcher(store, notifier, clock):
    return Dispatcher(store, notifier, single_offer_policy(), now_fn=clock)


@pytest.fixture
def multi_dispatcher(store, notifier, clock):
    return Dispatcher(store, notifier, multi_offer_policy(), now_fn=clock)


@pytest.fixture
def request_input():
    return ServiceRequestInput(
        service_type="general",
        scheduled_at=T0 + timedelta(days=1),
        duration_hours=2,
        patient_location=PATIENT_LOCATION,
    )
