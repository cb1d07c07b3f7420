"""
Scripted players for HexBound.
"""
from .base_agent import BaseAgent
from .scripted_agent import DIFFICULTY_PROFILES, ScriptedAgent
from .game_runner import GameRunner, make_players

__all__ = ['BaseAgent', 'ScriptedAgent', 'DIFFICULTY_PROFILES', 'GameRunner', 'make_players']
