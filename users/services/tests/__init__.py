"""Tests for :mod:`users.services`."""
