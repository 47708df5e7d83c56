"""Tests for :mod:`users.auth`."""
