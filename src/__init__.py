"""
Mapty - log running and cycling workouts on a map.

This package contains the complete application:
- core: Framework-agnostic workout models and state
- infrastructure: Storage backends, persistence, and the map view
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
