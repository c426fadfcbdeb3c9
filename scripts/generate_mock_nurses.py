import pandas as pd
import numpy as np

SERVICE_TYPES = ["general", "wound-care", "injection", "elderly-care", "post-surgery"]
QUALIFICATIONS = ["Registered General Nurse", "State Certified Nurse", "Primary Care Nurse"]


def generate_mock_nurses(num_nurses=100, output_file="mock_nurses.csv", seed=None):
    """
    Generates a dataset of nurse records scattered around Harare for matching simulations.
    Each nurse gets 1-3 offered services, some with a dedicated specialty rate.
    """
    rng = np.random.default_rng(seed)

    # Center around Harare, Zimbabwe
    CENTER_LAT = -17.824858
    CENTER_LON = 31.053028

    data = []
    for nurse_index in range(num_nurses):
        # Nurses within ~15km of the centre (roughly 0.15 degrees)
        lat = CENTER_LAT + rng.uniform(-0.15, 0.15)
        lon = CENTER_LON + rng.uniform(-0.15, 0.15)

        hourly_rate = np.round(rng.uniform(15.0, 60.0), 2)
        services = list(rng.choice(SERVICE_TYPES, size=rng.integers(1, 4), replace=False))
        # specialty premium of up to 30% on the first listed service, sometimes
        specialty = services[0] if rng.random() < 0.6 else ""
        specialty_rate = np.round(hourly_rate * rng.uniform(1.0, 1.3), 2) if specialty else np.nan

        data.append({
            "nurse_id": f"NRS-{str(nurse_index + 1).zfill(3)}",
            "name": f"Nurse {nurse_index + 1}",
            "qualification": rng.choice(QUALIFICATIONS),
            "lat": np.round(lat, 6),
            "lon": np.round(lon, 6),
            # 80% online, 20% offline
            "is_online": bool(rng.random() < 0.8),
            "hourly_rate": hourly_rate,
            "services": "|".join(services),
            "specialty": specialty,
            "specialty_rate": specialty_rate,
            "rating": np.round(rng.uniform(3.0, 5.0), 1),
            "average_response_minutes": np.round(rng.exponential(12.0), 1),
            # a third of nurses limit how far they travel
            "service_radius_km": rng.choice([5.0, 8.0, 12.0]) if rng.random() < 0.33 else np.nan,
        })

    df = pd.DataFrame(data)
    df.to_csv(output_file, index=False)
    print(f"Generated {num_nurses} nurses and saved to '{output_file}'")

    print("\nNurses per service type:")
    counts = df["services"].str.split("|").explode().value_counts()
    for service, count in counts.items():
        print(f"  {service}: {count} nurses")

    return df


if __name__ == "__main__":
    generate_mock_nurses(num_nurses=100, seed=7)
