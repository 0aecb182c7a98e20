"""
Population structure: sample dissimilarity and metric MDS
"""

from .distance import SEER_Dissimilarity
from .mds import SEER_MDS

__all__ = ['SEER_Dissimilarity', 'SEER_MDS']
