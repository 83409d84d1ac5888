"""Tests for the coach scheduling service."""
