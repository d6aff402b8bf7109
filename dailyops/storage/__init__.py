"""
Storage abstraction layer.
Interfaces for the external collaborators and their local implementations.
"""
from .interface import ActorDirectory, TemplateSource
from .sqlite_storage import SQLiteTemplateSource, StaticActorDirectory

__all__ = ['ActorDirectory', 'TemplateSource', 'SQLiteTemplateSource', 'StaticActorDirectory']
