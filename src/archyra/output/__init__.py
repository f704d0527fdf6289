"""Output formatting for ServiceResult (human text or JSON)."""
