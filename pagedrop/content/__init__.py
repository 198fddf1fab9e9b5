"""Content handling: extraction, sanitization, plain-text helpers."""
