# Supabase tables: users, auth.users
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Authentication is handled by Supabase Auth (auth.users table)

"""
Expected Supabase table structure:

users:
- id: uuid (primary key, references auth.users.id)
- name: text (unique, not null) - display name / nickname
- email: text (unique, not null)
- phone: text (unique, not null) - 010-XXXX-XXXX
- phone_verified: boolean (default: false)
- gender: text (not null) - values: male, female
- age: integer (not null, 18..100)
- mbti: text (nullable)
- personality: text (nullable, <= 500 chars)
- job: text (nullable, <= 100 chars)
- bio: text (nullable, <= 1000 chars)
- last_latitude: double precision (nullable)
- last_longitude: double precision (nullable)
- last_location_name: text (nullable)
- last_location_updated_at: timestamp (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

Note: Passwords and tokens live in auth.users managed by Supabase Auth.
"""
