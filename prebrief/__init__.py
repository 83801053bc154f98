"""Command-line entrypoint package for the attendee resolution engine."""
