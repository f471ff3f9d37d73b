"""Exam session engine."""
