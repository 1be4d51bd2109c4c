from .sweeper import SecuritySweeper, SweepResult

__all__ = ['SecuritySweeper', 'SweepResult']
