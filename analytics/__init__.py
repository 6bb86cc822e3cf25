"""
analytics -- from-scratch estimators behind the write-ups.

Each sub-module implements one technique using only numpy / scipy
(pandas for tables), with no black-box modeling packages.
"""

from .utils import ols_fit, add_const
from . import mle
from . import mnl
from . import mcmc
from . import count_models
from . import experiment
from . import kmeans
from . import knn
