"""
Configuration management for alb_deploy.

Contains Pydantic settings, the persisted binding model, and the JSON config
store that keeps the binding next to the project.
"""
