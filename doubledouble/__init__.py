from .doubledouble import *
from .doubledouble import __all__ as _dd_all
from . import ddmath

__all__ = _dd_all + ('ddmath', )
