"""Utility helpers for dungeon_fabric."""
