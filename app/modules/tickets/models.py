# Supabase tables: user_tickets, ticket_transactions
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

user_tickets:
- user_id: uuid (primary key, references users.id)
- free_tickets: integer (not null, default: 0, check >= 0)
- paid_tickets: integer (not null, default: 0, check >= 0)
- total_purchased_tickets: integer (not null, default: 0)
- last_free_ticket_date: date (nullable) - UTC day of the latest free grant
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

ticket_transactions (append-only):
- id: uuid (primary key)
- user_id: uuid (references users.id, not null)
- transaction_type: text (not null) - values: earned_free, purchased, used, expired
- ticket_type: text (not null) - values: free, paid
- amount: integer (not null) - signed, -1 for a search
- description: text (nullable)
- reference_id: text (nullable) - e.g. the search that consumed the ticket
- created_at: timestamp (default: now())

Balance mutations are conditional updates (UPDATE ... WHERE user_id = ? AND
<column> = <value read>), so two concurrent debits of the last ticket cannot
both succeed.
"""
