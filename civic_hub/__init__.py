"""
Civic Issue Hub - report, browse, upvote and comment on local civic issues.

civic_hub.main serves the REST API; civic_hub.client is the client core that
reaches the same data over the REST API or Supabase directly.
"""

__version__ = "0.1.0"
