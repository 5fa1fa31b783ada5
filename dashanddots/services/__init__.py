"""Domain services: rule engines and room coordination.

Imported by HTTP routes and socket handlers, keeping transport concerns
separated from game mechanics.
"""
