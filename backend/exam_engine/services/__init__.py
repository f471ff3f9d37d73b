"""Exam session services."""
