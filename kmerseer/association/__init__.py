"""
Association testing methods for k-mer analysis
"""

from .logit import SEER_Logit
from .assoc import SEER_Assoc

__all__ = ['SEER_Logit', 'SEER_Assoc']
