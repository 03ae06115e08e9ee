"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: Durable key-value slots (memory, file, R2/S3)
- persistence: The workout repository on top of a storage slot
- map: The marker layer the workout store pins workouts to

These wrappers translate between external formats and our domain models.
"""
