"""Request auth dependencies and Supabase query helpers."""
