# Supabase Auth + table: phone_verifications
# Accounts and sessions live in Supabase Auth (auth.users); the public users
# row is documented in app/modules/users/models.py

"""
Supabase Auth provides:
- auth.sign_up() - Register new users
- auth.sign_in_with_password() - Authenticate users
- auth.get_user() - Get current user from JWT token
- auth.sign_out() - Logout users

Expected Supabase table structure:

phone_verifications:
- id: uuid (primary key)
- phone: text (not null) - 010-XXXX-XXXX
- user_id: uuid (nullable) - set for codes issued to an existing account
- purpose: text (not null) - values: signup, existing
- verification_code: text (not null) - 6 digits
- attempts: integer (default: 0) - failed guesses
- is_verified: boolean (default: false)
- is_expired: boolean (default: false) - set when a newer code is issued
- expires_at: timestamp (not null)
- verified_at: timestamp (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

A code is usable while not verified, not expired, expires_at is in the
future and attempts is below the configured maximum.
"""
