#
# Mathematical constants and functions of DoubleDouble values
#
# (c) Neil Booth 2007-2021.  All rights reserved.
#

import math

from .doubledouble import DoubleDouble, int_power

__all__ = ('PI', 'E', 'min', 'max', 'int_power',
           'pow', 'sqrt', 'sin', 'cos', 'tan', 'sinh', 'cosh', 'tanh')


# The low components are the nearest floats to pi - math.pi and e - math.e
PI = DoubleDouble(math.pi, 1.2246467991473532e-16)
E = DoubleDouble(math.e, 1.4456468917292502e-16)


def min(lhs, rhs):
    '''Return the lesser of two values under the total order of DoubleDouble.compare().'''
    return rhs if lhs >= rhs else lhs


def max(lhs, rhs):
    '''Return the greater of two values under the total order of DoubleDouble.compare().'''
    return lhs if lhs >= rhs else rhs


def _not_implemented(name):
    def func(*args):
        raise NotImplementedError(f'{name} is not implemented for DoubleDouble')
    func.__name__ = name
    func.__qualname__ = name
    func.__doc__ = 'Not yet available; raises NotImplementedError.'
    return func


pow = _not_implemented('pow')
sqrt = _not_implemented('sqrt')
sin = _not_implemented('sin')
cos = _not_implemented('cos')
tan = _not_implemented('tan')
sinh = _not_implemented('sinh')
cosh = _not_implemented('cosh')
tanh = _not_implemented('tanh')
