"""HTTP blueprints for room administration."""
