"""
Seed Test Users Script
Creates ten test accounts (5 male, 5 female) around Seoul, each with a
profile photo, three public travel photos and three free tickets, so that
discovery, likes and chat can be exercised locally.
Requires SUPABASE_SERVICE_ROLE_KEY (accounts are created via the admin API).
"""

import sys
import random
from datetime import datetime, timezone
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from app.database.supabase_client import SupabaseClient
from supabase import Client
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

TEST_PASSWORD = "Test1234!"
TEST_FREE_TICKETS = 3

SEOUL_LOCATIONS = [
    {"name": "Gangnam Station", "lat": 37.4979, "lng": 127.0276},
    {"name": "Hongik Univ.", "lat": 37.5563, "lng": 126.9222},
    {"name": "Myeongdong", "lat": 37.5636, "lng": 126.9869},
    {"name": "Insadong", "lat": 37.5732, "lng": 126.9874},
    {"name": "Itaewon", "lat": 37.5347, "lng": 126.9945},
    {"name": "Seongsu", "lat": 37.5447, "lng": 127.0557},
    {"name": "Bukchon Hanok Village", "lat": 37.5826, "lng": 126.9831},
    {"name": "N Seoul Tower", "lat": 37.5512, "lng": 126.9882},
    {"name": "Hangang Park", "lat": 37.5283, "lng": 126.9294},
    {"name": "Gyeongbokgung", "lat": 37.5796, "lng": 126.9770},
]

TEST_USERS = [
    {"name": "minjun", "email": "minjun@test.com", "phone": "010-1111-0001", "gender": "male", "age": 28, "mbti": "ENTP", "job": "Developer"},
    {"name": "seojun", "email": "seojun@test.com", "phone": "010-1111-0002", "gender": "male", "age": 32, "mbti": "INTJ", "job": "Marketer"},
    {"name": "doyoon", "email": "doyoon@test.com", "phone": "010-1111-0003", "gender": "male", "age": 26, "mbti": "ESFP", "job": "Designer"},
    {"name": "woojin", "email": "woojin@test.com", "phone": "010-1111-0004", "gender": "male", "age": 30, "mbti": "ISFJ", "job": "Doctor"},
    {"name": "junhyuk", "email": "junhyuk@test.com", "phone": "010-1111-0005", "gender": "male", "age": 29, "mbti": "ENFJ", "job": "Teacher"},
    {"name": "seoyeon", "email": "seoyeon@test.com", "phone": "010-2222-0001", "gender": "female", "age": 27, "mbti": "INFP", "job": "Writer"},
    {"name": "jiwoo", "email": "jiwoo@test.com", "phone": "010-2222-0002", "gender": "female", "age": 25, "mbti": "ESTJ", "job": "Accountant"},
    {"name": "sua", "email": "sua@test.com", "phone": "010-2222-0003", "gender": "female", "age": 31, "mbti": "ENFP", "job": "Marketing Manager"},
    {"name": "yeeun", "email": "yeeun@test.com", "phone": "010-2222-0004", "gender": "female", "age": 28, "mbti": "ISTP", "job": "Photographer"},
    {"name": "chaewon", "email": "chaewon@test.com", "phone": "010-2222-0005", "gender": "female", "age": 26, "mbti": "ESFJ", "job": "Nurse"},
]


def create_auth_user(supabase: Client, user: dict) -> str:
    """Create a confirmed Supabase Auth account and return its id"""
    response = supabase.auth.admin.create_user({
        "email": user["email"],
        "password": TEST_PASSWORD,
        "email_confirm": True,
        "user_metadata": {"name": user["name"]},
    })
    return response.user.id


def seed_user(supabase: Client, user: dict) -> bool:
    existing = supabase.table("users")\
        .select("id")\
        .eq("email", user["email"])\
        .execute()
    if existing.data:
        logger.info(f"Skipping {user['email']}: already exists")
        return False

    user_id = create_auth_user(supabase, user)
    now = datetime.now(timezone.utc)
    supabase.table("users").insert({
        "id": user_id,
        **user,
        "phone_verified": True,
        "last_latitude": 37.5666,
        "last_longitude": 126.9784,
        "last_location_name": "Seoul City Hall",
        "last_location_updated_at": now.isoformat(),
    }).execute()

    initial = user["name"][0].upper()
    supabase.table("profile_photos").insert({
        "user_id": user_id,
        "file_url": f"https://placehold.co/400x600/FF6B6B/FFFFFF?text={initial}",
        "file_name": f"{user['name']}-profile.jpg",
        "file_size": 50000,
        "mime_type": "image/jpeg",
        "is_active": True,
    }).execute()

    travel_photos = []
    for location in random.sample(SEOUL_LOCATIONS, 3):
        travel_photos.append({
            "user_id": user_id,
            "file_url": f"https://placehold.co/600x800/4ECDC4/FFFFFF?text={location['name'].replace(' ', '+')}",
            "file_name": f"{user['name']}-{location['name'].lower().replace(' ', '-')}.jpg",
            "file_size": 100000,
            "mime_type": "image/jpeg",
            # jitter so photos at the same spot are not identical
            "latitude": location["lat"] + (random.random() - 0.5) * 0.01,
            "longitude": location["lng"] + (random.random() - 0.5) * 0.01,
            "location_name": location["name"],
            "description": f"Memories from {location['name']}",
            "is_public": True,
            "is_deleted": False,
        })
    supabase.table("travel_photos").insert(travel_photos).execute()

    supabase.table("user_tickets").upsert({
        "user_id": user_id,
        "free_tickets": TEST_FREE_TICKETS,
        "paid_tickets": 0,
        "total_purchased_tickets": 0,
        "last_free_ticket_date": now.date().isoformat(),
    }, on_conflict="user_id").execute()

    logger.info(f"Created {user['name']} ({user_id}) with 1 profile photo, 3 travel photos, {TEST_FREE_TICKETS} tickets")
    return True


def main():
    """Main function to seed test users"""
    try:
        supabase = SupabaseClient.get_service_client()

        logger.info("Starting test user seeding...")
        created = 0
        for user in TEST_USERS:
            try:
                if seed_user(supabase, user):
                    created += 1
            except Exception as e:
                logger.error(f"Error seeding user {user['email']}: {e}")

        logger.info(f"Seeding completed: {created} user(s) created")
        logger.info(f"Login with <name>@test.com / {TEST_PASSWORD}")

    except Exception as e:
        logger.error(f"Error during seeding: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
