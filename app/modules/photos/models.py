# Supabase tables: profile_photos, travel_photos
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Image bytes live in S3 under profile-photos/ and travel-photos/

"""
Expected Supabase table structure:

profile_photos:
- id: uuid (primary key)
- user_id: uuid (foreign key to users.id, not null)
- file_url: text (not null) - public URL
- file_name: text (not null) - original upload name
- file_size: integer
- mime_type: text - image/*
- storage_path: text - S3 object key
- is_active: boolean (default: true) - at most one active row per user
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

travel_photos:
- id: uuid (primary key)
- user_id: uuid (foreign key to users.id, not null)
- file_url: text (not null)
- file_name: text (not null)
- file_size: integer
- mime_type: text
- storage_path: text
- latitude: double precision (not null, -90..90)
- longitude: double precision (not null, -180..180)
- title: text (nullable, <= 200 chars)
- description: text (nullable)
- location_name: text (nullable, <= 255 chars)
- taken_at: timestamp (nullable)
- is_public: boolean (default: true)
- is_deleted: boolean (default: false) - soft delete
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

Only public, non-deleted travel photos take part in discovery and nearby search.
"""
