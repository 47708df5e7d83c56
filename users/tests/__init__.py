"""Tests for :mod:`users`."""
