"""Manifest engine, collaborators and settings for depedit."""
