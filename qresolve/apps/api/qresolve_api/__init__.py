"""QResolve API: multi-tenant asset and issue tracking on Supabase."""

__version__ = "0.3.0"
