"""
Tourdesk
Service layer: business logic and commits, called from the blueprints.
"""
