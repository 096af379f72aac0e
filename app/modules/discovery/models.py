# Supabase table: seen_users
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in seen_users.py
#
# Discovery reads users, travel_photos and profile_photos (see the photos and
# users modules) and writes only seen_users.

"""
Expected Supabase table structure:
- id: uuid (primary key)
- searcher_id: uuid (foreign key to users.id, not null)
- seen_user_id: uuid (foreign key to users.id, not null)
- seen_count: integer (not null, default: 1)
- last_seen_at: timestamp (not null)
- created_at: timestamp (default: now())

Unique constraint: (searcher_id, seen_user_id)
"""
