"""Agent chat backend: encrypted provider credentials and streaming completions."""
