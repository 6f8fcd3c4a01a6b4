"""
Services layer - business logic over Supabase tables.

Services take an optional client so the REST API (service-role client) and
the direct client path (user-scoped anon client) run the same queries.
"""
