"""
Create demo users for testing and demos.

Seeds one account per role in the Supabase `users` table and prints a session
token for each, ready to paste into an `Authorization: Bearer` header:
- admin, doctor, consultant, vendor (external affiliate), patient

Requires STORAGE_BACKEND=supabase with SUPABASE_URL / SUPABASE_KEY set, and a
fixed SESSION_SECRET so the printed tokens stay valid for the running API.
"""

import sys
from pathlib import Path

# Add parent directory to path so we can import from repositories
sys.path.insert(0, str(Path(__file__).parent.parent))

from datetime import datetime, timedelta, timezone

from config.settings import get_settings
from domain.identity import Identity, Role
from repositories.client import get_supabase
from services.identity_service import SessionTokens


DEMO_USERS = [
    Identity(user_id="demo-admin", role=Role.ADMIN),
    Identity(user_id="demo-doctor", role=Role.DOCTOR),
    Identity(user_id="demo-consultant", role=Role.CONSULTANT),
    Identity(user_id="demo-vendor", role=Role.VENDOR, is_external_vendor=True, affiliate_code="DEMO-AFF"),
    Identity(user_id="demo-patient", role=Role.PATIENT),
]


def create_demo_users():
    """Create or update the demo users and print a session token for each."""

    settings = get_settings()
    supabase = get_supabase()
    tokens = SessionTokens(settings.session_secret, ttl=timedelta(hours=settings.session_ttl_hours))
    now = datetime.now(timezone.utc)

    for identity in DEMO_USERS:
        row = {
            "id": identity.user_id,
            "role": identity.role.value,
            "is_external_vendor": identity.is_external_vendor,
            "affiliate_code": identity.affiliate_code,
        }
        result = supabase.table("users").upsert(row, on_conflict="id").execute()

        if getattr(result, "error", None):
            print(f"[ERROR] Failed to create {identity.user_id}")
            print(f"  Error: {result.error}")
            continue

        print(f"[SUCCESS] {identity.role.value}: {identity.user_id}")
        print(f"  Token: {tokens.issue(identity, now=now)}")

    print(f"\nTokens expire in {settings.session_ttl_hours}h.")


if __name__ == "__main__":
    create_demo_users()
