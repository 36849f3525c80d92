from .geometry import cauchy_geometry, spider_geometry
from .optim import truncated_conjugate_gradient

__all__ = ['cauchy_geometry', 'spider_geometry', 'truncated_conjugate_gradient']
