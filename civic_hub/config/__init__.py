"""Supabase client construction."""
