"""HTML sanitization, inspection and Markdown conversion."""
