import os
from datetime import datetime, timedelta, timezone
from typing import List

import numpy as np
import pandas as pd

from bookings.models import RequestStatus, ServiceRequestInput
from bookings.repository import NURSES, PATIENTS
from dispatch.dispatcher import Dispatcher
from dispatch.expiry import OfferExpirySweeper
from dispatch.state_machines.request_state import StaleStateError
from geo import GeolocationError, StaticGeolocationProvider
from notifications.sender import LoggingNotificationSender
from nurses.models import NurseProfile, NurseStats, SpecialtyRate
from nurses.policy import policy_from_env
from patients.models import MatchingPreferences, PatientProfile
from scripts.generate_mock_nurses import SERVICE_TYPES, generate_mock_nurses
from store.document_store import InMemoryDocumentStore

CENTER_LAT = -17.824858
CENTER_LON = 31.053028


class SimulationClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now


def load_nurses(filepath="mock_nurses.csv") -> List[NurseProfile]:
    # Resolve the correct path depending on where the user runs the script from.
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    absolute_path = os.path.join(base_dir, filepath)

    if not os.path.exists(absolute_path):
        generate_mock_nurses(output_file=absolute_path, seed=7)

    df = pd.read_csv(absolute_path)
    nurses = []
    for row in df.itertuples(index=False):
        specialties = ()
        if isinstance(row.specialty, str) and not pd.isna(row.specialty_rate):
            specialties = (SpecialtyRate(row.specialty, float(row.specialty_rate)),)

        nurses.append(
            NurseProfile(
                id=row.nurse_id,
                name=row.name,
                is_online=bool(row.is_online),
                hourly_rate=float(row.hourly_rate),
                location=(float(row.lat), float(row.lon)),
                qualification=row.qualification,
                specialty_rates=specialties,
                services=tuple(str(row.services).split("|")),
                stats=NurseStats(
                    rating=float(row.rating),
                    average_response_minutes=float(row.average_response_minutes),
                ),
                service_radius_km=None if pd.isna(row.service_radius_km) else float(row.service_radius_km),
            )
        )
    return nurses


def run_simulation(num_requests=30, seed=42):
    print("=== STARTING NURSE MATCHING SIMULATION ===")
    rng = np.random.default_rng(seed)

    # 1. Load Data
    nurses = load_nurses()
    store = InMemoryDocumentStore()
    for nurse in nurses:
        store.put(NURSES, nurse.id, nurse.to_document())
    print(f"Loaded {len(nurses)} nurses ({sum(n.is_online for n in nurses)} online).\n")

    # 2. Configure System (MATCHING_MODE / MATCHING_OFFER_COUNT from .env)
    policy = policy_from_env()
    clock = SimulationClock(datetime(2026, 11, 2, 8, 0, tzinfo=timezone.utc))
    dispatcher = Dispatcher(store, LoggingNotificationSender(policy.offer_window_minutes), policy, now_fn=clock)
    sweeper = OfferExpirySweeper(dispatcher)
    print(f"Policy: {policy.mode.value}-offer, top {policy.offer_count}, {policy.offer_window_minutes} min window\n")

    results = []
    for i in range(num_requests):
        patient = PatientProfile(
            id=f"PAT-{str(i + 1).zfill(3)}",
            name=f"Patient {i + 1}",
            preferences=MatchingPreferences(
                max_distance_km=float(rng.choice([5.0, 10.0, 15.0])),
                price_min=15.0,
                price_max=float(rng.choice([40.0, 60.0, 80.0])),
            ),
        )
        store.put(PATIENTS, patient.id, patient.to_document())

        device = StaticGeolocationProvider((CENTER_LAT + rng.uniform(-0.08, 0.08), CENTER_LON + rng.uniform(-0.08, 0.08)))
        try:
            location = device.get_current_position()
        except GeolocationError as e:
            print(f"[NO LOCATION] {patient.id}: {e}")
            continue
        request_input = ServiceRequestInput(
            service_type=str(rng.choice(SERVICE_TYPES)),
            scheduled_at=clock.now + timedelta(days=1),
            duration_hours=float(rng.choice([1, 2, 3])),
            patient_location=location,
        )

        booking = dispatcher.request_service(patient.id, request_input)
        request = booking.request

        if booking.no_nurses_available:
            print(f"[NO MATCH] {patient.id} ({request_input.service_type})")
            results.append({"request_id": request.id, "status": request.status.value, "nurse": "", "offers": 0})
            continue

        # Simulate responses: better-rated nurses accept more often, some never answer.
        for nurse_id in list(request.matching.pending_nurse_ids):
            roll = rng.random()
            candidate = request.matching.candidate(nurse_id)
            acceptance_probability = 0.3 + 0.1 * candidate.rating if candidate else 0.5

            if roll < 0.15:
                continue  # no answer, left to expire
            try:
                request = dispatcher.respond(request.id, nurse_id, bool(roll < acceptance_probability)).request
            except StaleStateError as e:
                # late responders lose to whoever accepted first
                print(f"  {nurse_id} on {request.id}: {e}")

            if request.status != RequestStatus.PENDING_RESPONSE:
                break

        # Let the offer window lapse for anything still unanswered.
        clock.now += timedelta(minutes=policy.offer_window_minutes + 1)
        sweeper.run_cycle()
        request = dispatcher.repository.get(request.id)

        print(
            f"[{request.status.value.upper()}] {patient.id} ({request_input.service_type}) -> "
            f"{request.matching.selected_nurse_id or '-'} "
            f"({len(request.matching.offered_nurse_ids)} offered, {len(request.matching.available_nurses)} matched)"
        )
        results.append({
            "request_id": request.id,
            "status": request.status.value,
            "nurse": request.matching.selected_nurse_id or "",
            "offers": len(request.matching.offered_nurse_ids),
        })

    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    output_path = os.path.join(base_dir, "matching_results.csv")
    df = pd.DataFrame(results)
    df.to_csv(output_path, index=False)

    print("\n=== SIMULATION COMPLETE ===")
    for status, count in df["status"].value_counts().items():
        print(f"  {status}: {count}")
    print(f"Results written to '{output_path}'.")


if __name__ == "__main__":
    run_simulation()
