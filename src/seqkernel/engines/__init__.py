"""Kernel engines: substitution tables and the gap-weighted string kernel."""
