"""devpilot: conversation memory and code-extraction backend for an AI coding assistant."""
