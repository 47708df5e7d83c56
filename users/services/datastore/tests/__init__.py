"""Tests for :mod:`users.services.datastore`."""
