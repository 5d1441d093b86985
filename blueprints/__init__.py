"""
Blueprints package for TourneyTrack application
Contains the JSON routes over the scheduling engine
"""

from .api import api_bp

__all__ = ['api_bp']
