"""
Core business logic for the workout log.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
or any infrastructure concerns. The map and the storage slot are reached
through protocols, so the workout logic can be tested in isolation.
"""
