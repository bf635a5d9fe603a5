"""Persistence for plans and workout history."""
