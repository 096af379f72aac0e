# Supabase tables: likes, matches
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

likes:
- id: uuid (primary key)
- sender_id: uuid (foreign key to users.id, not null)
- receiver_id: uuid (foreign key to users.id, not null)
- status: text (not null, default: 'pending') - values: pending, accepted, rejected
- responded_at: timestamp (nullable)
- created_at: timestamp (default: now())

Unique constraint: (sender_id, receiver_id)

matches:
- id: uuid (primary key)
- user1_id: uuid (foreign key to users.id, not null) - always the smaller id of the pair
- user2_id: uuid (foreign key to users.id, not null)
- is_active: boolean (default: true)
- matched_at: timestamp (default: now())

Unique constraint: (user1_id, user2_id); check constraint user1_id < user2_id
"""
