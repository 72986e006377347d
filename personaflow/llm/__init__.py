"""Model transport and tool-call mapping."""
