"""Alphabets and symbol encoding."""
