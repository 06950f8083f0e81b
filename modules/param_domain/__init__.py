"""
Parameter Domain Module
=======================

Responsibility:
- Continuous search ranges for single hyperparameters.
- Binding of a range onto a concrete estimator hyperparameter.
- Uniform sampling, clipping and unit-cube scaling for surrogate models.
"""

from .param_domain import ParamDomain, ParamBinding, EstimatorParam, ParamDomainPair

__all__ = ['ParamDomain', 'ParamBinding', 'EstimatorParam', 'ParamDomainPair']
