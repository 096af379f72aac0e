# Supabase tables: chat_rooms, chat_participants, chat_messages
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

chat_rooms:
- id: uuid (primary key)
- user1_id: uuid (foreign key to users.id, not null) - always the smaller id of the pair
- user2_id: uuid (foreign key to users.id, not null)
- is_active: boolean (default: true)
- created_at: timestamp (default: now())
- updated_at: timestamp (bumped on every new message)

Unique constraint: (user1_id, user2_id); check constraint user1_id < user2_id

chat_participants:
- id: uuid (primary key)
- chat_room_id: uuid (foreign key to chat_rooms.id, not null)
- user_id: uuid (foreign key to users.id, not null)
- last_read_message_id: uuid (foreign key to chat_messages.id, nullable) - read cursor
- last_read_at: timestamp (nullable)
- created_at: timestamp (default: now())

Unique constraint: (chat_room_id, user_id)

chat_messages:
- id: uuid (primary key)
- chat_room_id: uuid (foreign key to chat_rooms.id, not null)
- sender_id: uuid (foreign key to users.id, not null)
- message_text: text (not null)
- message_type: text (not null, default: 'text') - values: text, image, system
- is_read: boolean (default: false)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
"""
