"""Database models"""
from cmsportal.models.state_entry import StateEntry

__all__ = ["StateEntry"]
