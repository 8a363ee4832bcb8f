#!/usr/bin/env python3
"""Manual check that the configured Google Maps key can geocode and measure a distance."""

import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / "src"))

from deliveries.config import settings
from deliveries.models.domain import Coordinate
from deliveries.services.routing.google_maps import GoogleMapsClient, check_health


def main():
    print("=" * 60)
    print("Google Maps Connection Test")
    print("=" * 60)
    print()

    print("1. Checking Google Maps configuration...")
    if not settings.google_maps_api_key:
        print("   [ERROR] Google Maps API key is not configured")
        print("   Please set DLV_GOOGLE_MAPS_API_KEY in your .env file")
        return 1

    print(f"   [OK] Base URL: {settings.google_maps_base_url}")
    print(f"   [OK] Mode: {settings.travel_mode}, language: {settings.language}")
    print()

    print("2. Testing geocoding health check...")
    if not check_health():
        print("   [ERROR] Geocoding request failed (see log output above)")
        return 1
    print("   [OK] Geocoding API is reachable and the key is accepted")
    print()

    print("3. Testing distance matrix request...")
    try:
        client = GoogleMapsClient()
        # Two points in central Curitiba
        origin = Coordinate(-25.4284, -49.2733)
        destination = Coordinate(-25.4411, -49.2769)
        meters, seconds = client.distance_matrix(origin, destination)
        print(f"   [OK] Distance: {meters} m")
        print(f"   [OK] Duration: {seconds} s")
    except Exception as e:
        print(f"   [ERROR] Error during distance matrix request: {e}")
        return 1
    print()

    print("4. Testing directions request...")
    try:
        result = client.directions(origin, destination)
        print(f"   [OK] Route of {result.distance_meters} m with {len(result.polyline)} polyline points")
    except Exception as e:
        print(f"   [ERROR] Error during directions request: {e}")
        return 1
    print()

    print("=" * 60)
    print("[SUCCESS] Google Maps is connected and working!")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
