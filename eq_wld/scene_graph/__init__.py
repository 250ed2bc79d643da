"""Mesh, material, actor and light extraction from a WLD document."""
