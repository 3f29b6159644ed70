"""Scheduled jobs for the Speed Insights drain service."""
