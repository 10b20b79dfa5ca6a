"""Tests for councilhub."""
