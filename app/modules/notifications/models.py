# Supabase tables: push_tokens, notification_settings, push_notifications
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

push_tokens:
- id: uuid (primary key)
- user_id: uuid (foreign key to users.id, not null)
- token: text (not null) - FCM registration token
- device_type: text (not null) - values: ios, android, web
- device_id: text (nullable) - registering again from the same device deactivates the old token
- app_version: text (nullable)
- is_active: boolean (default: true) - cleared when FCM reports the token unregistered/invalid
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

notification_settings:
- user_id: uuid (primary key, foreign key to users.id)
- new_messages: boolean (default: true)
- new_matches: boolean (default: true)
- new_likes: boolean (default: true)
- chat_messages: boolean (default: true)
- marketing: boolean (default: false)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

push_notifications:
- id: uuid (primary key)
- user_id: uuid (foreign key to users.id, not null)
- title: text (not null)
- body: text (not null)
- data: jsonb (nullable)
- notification_type: text (not null) - values: new_message, new_match, new_like, chat_message, system
- is_sent: boolean (not null)
- sent_at: timestamp (nullable)
- error_message: text (nullable)
- created_at: timestamp (default: now())
"""
