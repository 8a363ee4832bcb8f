#!/usr/bin/env python3
"""Helper script to check and create .env file for Google Maps and Baserow configuration."""

from pathlib import Path
import os

SECRET_KEYS = ("DLV_GOOGLE_MAPS_API_KEY", "DLV_BASEROW_TOKEN")


def _mask(value):
    if len(value) > 12:
        return value[:6] + "..." + value[-4:]
    return "***"


def main():
    project_root = Path(__file__).parent
    env_file = project_root / ".env"

    print("=" * 60)
    print("Delivery Routes Environment Variables Checker")
    print("=" * 60)
    print()

    if env_file.exists():
        print(f"✅ Found .env file at: {env_file}")
        print()
        print("Current contents:")
        print("-" * 60)
        with open(env_file, "r", encoding="utf-8") as f:
            for line in f.read().split("\n"):
                name, sep, value = line.partition("=")
                if sep and name.strip() in SECRET_KEYS and value.strip():
                    print(f"{name}={_mask(value.strip())}")
                else:
                    print(line)
        print("-" * 60)
        print()
    else:
        print(f"❌ .env file NOT found at: {env_file}")
        print()
        print("Creating template .env file...")
        print()

        template = """# Google Maps web services (Required for geocoding and distances)
DLV_GOOGLE_MAPS_API_KEY=your-google-maps-key-here
# DLV_TRAVEL_MODE=driving
# DLV_LANGUAGE=pt-BR

# Baserow distance cache (Optional - the cache runs in memory only without it)
DLV_BASEROW_API_URL=https://api.baserow.io/api
DLV_BASEROW_TOKEN=your-database-token-here
DLV_BASEROW_DISTANCE_TABLE_ID=

# API Configuration
DLV_API_PREFIX=/api
# DLV_FRONTEND_ALLOWED_ORIGINS - Leave commented to use defaults
# JSON array: ["http://localhost:5173"] or comma-separated: http://localhost:5173,http://127.0.0.1:5173

# Cache maintenance defaults
# DLV_CACHE_RETENTION_DAYS=30
# DLV_CACHE_MAX_RECORDS=10000
"""

        with open(env_file, "w", encoding="utf-8") as f:
            f.write(template)

        print(f"✅ Created .env file at: {env_file}")
        print()
        print("⚠️  Please edit .env and add your Google Maps key and Baserow token!")
        print()
        return

    print("Checking environment variables...")
    print()
    for name in ("DLV_GOOGLE_MAPS_API_KEY", "DLV_BASEROW_TOKEN", "DLV_BASEROW_DISTANCE_TABLE_ID"):
        value = os.getenv(name)
        if value:
            shown = _mask(value) if name in SECRET_KEYS else value
            print(f"✅ {name} (from environment): {shown}")
        else:
            print(f"❌ {name} not found in environment")
    print()

    print("Testing config loading...")
    print()

    try:
        import sys
        sys.path.insert(0, str(project_root / "src"))
        from deliveries.config import settings

        google_ok = bool(settings.google_maps_api_key)
        baserow_ok = bool(settings.baserow_token and settings.baserow_distance_table_id)
        print(f"{'✅' if google_ok else '❌'} Google Maps key loaded: {google_ok}")
        print(f"{'✅' if baserow_ok else '⚠️ '} Baserow distance table configured: {baserow_ok}")
        print()

        print("=" * 60)
        if google_ok:
            print("✅ SUCCESS: routing is configured!")
            if not baserow_ok:
                print("   Distances will only be cached in memory.")
        else:
            print("❌ ERROR: Google Maps is NOT configured")
            print()
            print("Troubleshooting:")
            print("1. Make sure .env file exists in project root")
            print("2. Make sure variables start with DLV_ prefix")
            print("3. Make sure there are no spaces around = sign")
            print("4. Restart backend after editing .env")
        print("=" * 60)
    except Exception as e:
        print(f"❌ Error loading config: {e}")
        print()
        print("Make sure you're running this from the project root directory")


if __name__ == "__main__":
    main()
