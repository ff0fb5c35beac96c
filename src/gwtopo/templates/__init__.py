"""Jinja2 templates for LXD profiles and netplan descriptors."""
