"""
kmerseer: k-mer association testing with population structure correction

Logistic regression of a binary phenotype on k-mer presence/absence, with
metric MDS components of the sample dissimilarity matrix as covariates.
"""

__version__ = "0.1.0"
__author__ = "kmerseer Development Team"

from .matrix.distance import SEER_Dissimilarity
from .matrix.mds import SEER_MDS
from .association.logit import SEER_Logit
from .association.assoc import SEER_Assoc
from .utils.data_types import DissimilarityMatrix, KmerResult, KmerAssociationResults

__all__ = [
    'SEER_Dissimilarity',
    'SEER_MDS',
    'SEER_Logit',
    'SEER_Assoc',
    'DissimilarityMatrix',
    'KmerResult',
    'KmerAssociationResults',
]
