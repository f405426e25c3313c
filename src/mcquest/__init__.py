"""Minecraft challenge platform API."""
