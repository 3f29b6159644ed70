"""Speed Insights drain service package.

Exports for testing and module access.
"""

from speed_insights import lib, models

__all__ = ['lib', 'models']
