#
# Double-double extended precision floating-point arithmetic
#
# (c) Neil Booth 2007-2021.  All rights reserved.
#

import copy
import re
import threading
from collections import namedtuple
from decimal import Decimal
from enum import IntFlag, IntEnum
from fractions import Fraction
from math import copysign, floor, frexp, isfinite, isinf, isnan, ldexp

import attr

__all__ = ('Context', 'DefaultContext', 'get_context', 'set_context', 'local_context',
           'Flags', 'Compare', 'HandlerKind', 'TextFormat', 'DefaultTextFormat',
           'HexTextFormat', 'DoubleDouble',
           'DDError', 'Invalid', 'InvalidAdd', 'InvalidMultiply', 'InvalidDivide',
           'DivisionByZero', 'Overflow', 'FormatError',
           'OP_ADD', 'OP_SUBTRACT', 'OP_MULTIPLY', 'OP_DIVIDE', 'OP_FROM_INT',
           'OP_FROM_FRACTION', 'OP_FROM_STRING',
           'NAN', 'INFINITY', 'NEGATIVE_INFINITY', 'ZERO', 'NEGATIVE_ZERO', 'ONE', 'TEN',
           'make_nan', 'make_zero', 'make_infinity',
           'split', 'two_sum', 'two_diff', 'quick_two_sum', 'two_product',
           'normalize_two', 'normalize_three',
           'add', 'subtract', 'multiply', 'divide', 'int_power', 'parse',
           'from_int', 'from_float', 'from_fraction', 'from_decimal', 'from_string',
           'from_value')


# Operation names
OP_ADD = 'add'
OP_SUBTRACT = 'subtract'
OP_MULTIPLY = 'multiply'
OP_DIVIDE = 'divide'
OP_FROM_INT = 'from_int'
OP_FROM_FRACTION = 'from_fraction'
OP_FROM_STRING = 'from_string'


# Three-way result of the compare() operation.  The order is total so there is no
# unordered result.
class Compare(IntEnum):
    LESS_THAN = 0
    EQUAL = 1
    GREATER_THAN = 2


# Operation status flags.
class Flags(IntFlag):
    INVALID     = 0x01
    DIV_BY_ZERO = 0x02
    OVERFLOW    = 0x04


@attr.s(slots=True, kw_only=True, eq=False)
class TextFormat:
    '''Controls the diagnostic output of a DoubleDouble.  Both components are rendered as
    they are stored; the text is not intended to be parsed back.'''

    # Text before the high component
    prefix = attr.ib(default='DoubleDouble(')
    # Text between the high and low components
    separator = attr.ib(default='|')
    # Text after the low component
    suffix = attr.ib(default=')')
    # If True, components are output with float.hex() so no bits are hidden by decimal
    # rounding
    hex_components = attr.ib(default=False)
    # If True, components with a clear sign bit are preceded with a '+'.
    force_leading_sign = attr.ib(default=False)
    # The string output for infinity
    inf = attr.ib(default='Infinity')
    # The string output for NaNs
    nan = attr.ib(default='NaN')

    def leading_sign(self, component):
        '''Return the leading sign string.'''
        return '-' if copysign(1.0, component) < 0 else '+' if self.force_leading_sign else ''

    def format_component(self, component):
        if isnan(component):
            return self.nan
        text = self.inf if isinf(component) else (
            component.hex() if self.hex_components else repr(component))
        return self.leading_sign(component) + text.lstrip('-')

    def format(self, value):
        return ''.join((self.prefix, self.format_component(value.hi), self.separator,
                        self.format_component(value.lo), self.suffix))


DefaultTextFormat = TextFormat()
HexTextFormat = TextFormat(hex_components=True)


#
# Signals
#

class DDError(ArithmeticError):
    '''All arithmetic exceptions signalled by this module subclass from this.

    DDError expects two arguments:

         def __init__(self, op_tuple, result):

    op_tuple is a tuple of the operation name and operands causing the signal. result is
    the value that default exception handling should deliver.

    Exceptions derived from DDError must have a linear inheritance from it and through
    the first base class if an exception has multiple base classes.  See, for example,
    DivisionByZero.
    '''

    flag_to_raise = 'Nope! Fix your bug.'

    @property
    def op_tuple(self):
        return self.args[0]

    @property
    def default_result(self):
        return self.args[1]

    def signal(self, context=None):
        '''Call to signal an exception.  This routine handles the exception according to
        default or alternative exception handling as specified in the context.'''
        context = context or get_context()
        kind, handler = context.handler(self.__class__)

        if kind != HandlerKind.NO_FLAG:
            context.flags |= self.flag_to_raise
            if kind == HandlerKind.RECORD_EXCEPTION:
                context.exceptions.append(self)

        if kind == HandlerKind.RAISE:
            raise self
        if kind == HandlerKind.SUBSTITUTE_VALUE:
            return handler(self, context)
        return self.default_result


class Invalid(DDError):
    '''Invalid operation base class.  Signalled when an operation has no usefully defineable
    result.  The default result is a NaN.
    '''

    flag_to_raise = Flags.INVALID

    def __init__(self, op_tuple, result=None):
        super().__init__(op_tuple, NAN if result is None else result)


class InvalidAdd(Invalid):
    '''Signalled when adding two differently-signed infinities or subtracting two like-signed
    infinities.'''


class InvalidMultiply(Invalid):
    '''Signalled when multiplying a zero and an infinity.'''


class InvalidDivide(Invalid):
    '''Signalled when dividing two infinities.'''


class DivisionByZero(DDError, ZeroDivisionError):
    '''A divide operation with a zero divisor.  The default result is an infinity with the
    XOR of the operand signs.'''

    flag_to_raise = Flags.DIV_BY_ZERO


class Overflow(DDError):
    '''Signalled when finite operands give a result too large to represent.  The default
    result is an infinity of the appropriate sign.'''

    flag_to_raise = Flags.OVERFLOW


class FormatError(Invalid, ValueError):
    '''Signalled when a string is not a valid DoubleDouble literal.  The default context
    raises it; with default handling the result is a NaN.'''

    @property
    def text(self):
        return self.op_tuple[1]

    def __str__(self):
        return f'invalid DoubleDouble literal: {self.text!r}'


# Alternate exception handling

class HandlerKind(IntEnum):
    '''Indicates how a signalled exception should be handled.'''
    # Return the default result and raise the associated flag
    DEFAULT = 0

    # Default exception handling without raising the associated flag
    NO_FLAG = 1

    # Default exception handling but also record the exception in context.exceptions
    RECORD_EXCEPTION = 2

    # Substitute a value for the default result.  A handler must be provided with
    # signature
    #
    #    def handler(exception, context):
    #
    # The value returned by the handler will become the operation's result.
    SUBSTITUTE_VALUE = 3

    # Raise the exception immediately
    RAISE = 4

    def requires_handler(self):
        return self == HandlerKind.SUBSTITUTE_VALUE


class Context:
    '''The execution context for operations.  Carries the status flags and the handlers of
    signalled exceptions.'''

    __slots__ = ('flags', 'handlers', 'exceptions')

    def __init__(self, *, flags=0):
        '''flags represents the initially raised flags.'''
        self.flags = flags
        self.handlers = {}
        self.exceptions = []

    def copy(self):
        '''Return a (deep) copy of the context.'''
        # A deep copy is needed because handlers and exceptions are mutable containers
        return copy.deepcopy(self)

    def set_handler(self, exc_classes, kind, handler=None):
        classes = (exc_classes, ) if not isinstance(exc_classes, (tuple, list)) else exc_classes
        if not all(isinstance(exc_class, type) and issubclass(exc_class, DDError)
                   for exc_class in classes):
            raise TypeError('all exception classes must be subclasses of DDError')
        if not isinstance(kind, HandlerKind):
            raise TypeError('kind must be a HandlerKind instance')
        if (handler is not None) ^ kind.requires_handler():
            if handler is None:
                raise ValueError(f'handler not given for kind {kind!r}')
            else:
                raise ValueError(f'handler given for kind {kind!r}')
        pair = (kind, handler)
        for exc_class in classes:
            self.handlers[exc_class] = pair

    def handler(self, exc_class):
        '''Return a (handler_kind, callback) pair for a signal class.'''
        if not issubclass(exc_class, DDError):
            raise TypeError('exc_class must be a subclass of DDError')

        for cls in exc_class.mro():
            handler = self.handlers.get(cls)
            if handler:
                return handler

        return HandlerKind.DEFAULT, None

    def __repr__(self):
        return f'<Context flags={self.flags!r}>'


#
# Error-free transformations.  Each returns the rounded result of an operation on two
# floats together with its exact rounding error, as a DoubleDouble pair that is not checked
# or canonicalized.
#

# Veltkamp's splitting constant 2^27 + 1
_SPLITTER = 2.0 ** 27 + 1.0
# Above this magnitude _SPLITTER * a overflows, so split by truncation
_SPLIT_THRESHOLD = ldexp(1.0, 996)


def _pair(hi, lo):
    return tuple.__new__(DoubleDouble, (hi, lo))


def split(a):
    '''Split a float into two non-overlapping halves whose sum is exactly a.  Each half has at
    most 26 significant bits, except that the low half of a float too large for Veltkamp's
    method may have 27.

    Large floats are split by truncating the significand, never rounding it up, so the high
    half cannot leave the float range.  A product of a 26-bit and a 27-bit half is still
    exact; only two such large operands would need two 27-bit halves, and their product
    overflows regardless.'''
    if -_SPLIT_THRESHOLD <= a <= _SPLIT_THRESHOLD:
        temp = _SPLITTER * a
        hi = temp - (temp - a)
        return _pair(hi, a - hi)
    significand, exponent = frexp(a)
    hi = ldexp(float(int(ldexp(significand, 26))), exponent - 26)
    return _pair(hi, a - hi)


def two_sum(a, b, c=None):
    '''Return (s, e) where s is the rounded sum a + b and s + e is exactly a + b.  No ordering
    of the operands is assumed.

    With three operands return the rounded sum of all three and the sum of the two rounding
    errors made on the way.'''
    if c is not None:
        first = two_sum(a, b)
        second = two_sum(first.hi, c)
        return _pair(second.hi, first.lo + second.lo)
    s = a + b
    v = s - a
    return _pair(s, (a - (s - v)) + (b - v))


def two_diff(a, b):
    '''Return (d, e) where d is the rounded difference a - b and d + e is exactly a - b.'''
    d = a - b
    v = d - a
    return _pair(d, (a - (d - v)) - (b + v))


def quick_two_sum(a, b):
    '''As two_sum, but requires |a| >= |b| (or a zero).  The caller is responsible for the
    ordering; it is not checked.'''
    s = a + b
    return _pair(s, b - (s - a))


def two_product(a, b):
    '''Return (p, e) where p is the rounded product a * b and p + e is exactly a * b.'''
    p = a * b
    a_hi, a_lo = split(a)
    b_hi, b_lo = split(b)
    return _pair(p, ((a_hi * b_hi - p) + a_hi * b_lo + b_hi * a_lo) + a_lo * b_lo)


#
# Normalization
#

def normalize_two(a, b):
    '''Return a + b as a normalized DoubleDouble.  Requires |a| >= |b|.'''
    return quick_two_sum(a, b)


def normalize_three(a, b, c):
    '''Return a + b + c as a normalized DoubleDouble.  Requires |a| >= |b| >= |c|.

    Every arithmetic operator delivers its result through here.'''
    s0 = quick_two_sum(b, c)
    s1 = quick_two_sum(a, s0.hi)
    if s1.lo != 0.0:
        lo = s1.lo + s0.lo
    else:
        # The primary correction vanished but a secondary residual may remain
        lo = quick_two_sum(s1.hi, s0.lo).lo
    return _pair(s1.hi, lo)


class DoubleDouble(namedtuple('DoubleDouble', 'hi lo')):
    '''An extended precision number represented as the unevaluated sum of two floats.

    hi holds the correctly-rounded float approximation of the value and lo the residual hi
    could not represent, so |lo| <= ulp(hi) / 2 for normalized values.  Results of the
    arithmetic operations and the parser are normalized; values built directly from a pair
    of floats need not be.

    A NaN has a NaN hi.  Infinities store the same infinity in both components.  A zero has
    both components zero, its sign being that of hi, or of lo when hi is +0.0.

    Values are immutable.  Operations with an int or float operand convert it to a
    DoubleDouble first.
    '''

    __slots__ = ()

    def __new__(cls, hi, lo=0.0):
        '''Create a DoubleDouble from a pair of floats.  Non-finite components are
        canonicalized so that both components hold the NaN or infinity.'''
        hi = float(hi)
        lo = float(lo)
        if not isfinite(hi):
            lo = hi
        elif not isfinite(lo):
            hi = lo
        return super().__new__(cls, hi, lo)

    @classmethod
    def parse(cls, text, on_error=None, context=None):
        '''Parse a DoubleDouble literal.  See parse().'''
        return parse(text, on_error, context)

    ##
    ## Non-computational operations
    ##

    def is_nan(self):
        '''Return True if this is a NaN.'''
        return isnan(self.hi)

    def is_infinite(self):
        '''Return True if the value is infinite.'''
        return isinf(self.hi) or isinf(self.lo)

    def is_finite(self):
        '''Return True if the value is finite.'''
        return isfinite(self.hi) and isfinite(self.lo)

    def is_negative(self):
        '''Return True if the sign bit is set.  The sign of a zero with a positive hi is the sign
        of lo.'''
        if copysign(1.0, self.hi) < 0:
            return True
        return self.hi == 0.0 and copysign(1.0, self.lo) < 0

    def is_zero(self):
        '''Return True if the value is zero regardless of sign.'''
        return self.hi == 0.0 and self.lo == 0.0

    def to_float(self):
        '''Return hi + lo rounded to a float.  This loses the extra precision.'''
        return self.hi + self.lo

    def as_integer_ratio(self):
        '''Return a pair (n, d) of integers that represent the exact value hi + lo as a fraction
        in lowest terms and with a positive denominator.'''
        if self.is_nan():
            raise ValueError('cannot convert NaN to integer ratio')
        if self.is_infinite():
            raise OverflowError('cannot convert Infinity to integer ratio')
        value = Fraction(self.hi) + Fraction(self.lo)
        return value.numerator, value.denominator

    def compare(self, other):
        '''Compare under a total order.  A NaN equals a NaN and is greater than any other value
        including +Infinity.  Otherwise values are ordered by hi, then by lo.'''
        rhs = _convert_for_arith(other)
        if rhs is None:
            raise TypeError(f'cannot compare DoubleDouble with {type(other).__name__}')

        if self.is_nan():
            return Compare.EQUAL if rhs.is_nan() else Compare.GREATER_THAN
        if rhs.is_nan():
            return Compare.LESS_THAN

        if self.is_infinite() or rhs.is_infinite():
            lhs_rank = _infinity_rank(self)
            rhs_rank = _infinity_rank(rhs)
            if lhs_rank == rhs_rank:
                return Compare.EQUAL
            return Compare.LESS_THAN if lhs_rank < rhs_rank else Compare.GREATER_THAN

        if self.hi != rhs.hi:
            return Compare.LESS_THAN if self.hi < rhs.hi else Compare.GREATER_THAN
        if self.lo != rhs.lo:
            return Compare.LESS_THAN if self.lo < rhs.lo else Compare.GREATER_THAN
        return Compare.EQUAL

    ##
    ## Quiet computational operations
    ##

    def copy_abs(self):
        '''Return the absolute value.  A NaN is returned unchanged, as is a zero unless its lo
        is less than zero.'''
        if self.hi < 0.0 or (self.hi == 0.0 and self.lo < 0.0):
            return _pair(-self.hi, -self.lo)
        return self

    def copy_negate(self):
        '''Return this value with the opposite sign.'''
        return _pair(-self.hi, -self.lo)

    def reciprocal(self, context=None):
        '''Return 1 / self.'''
        return divide(ONE, self, context)

    def to_string(self, text_format=None):
        '''Return a diagnostic rendering of both components.  See TextFormat.'''
        return (text_format or DefaultTextFormat).format(self)

    def __repr__(self):
        return self.to_string()

    def __str__(self):
        return self.to_string()

    ##
    ## Python support - make it feel like a Python numeric data type.
    ##

    def __abs__(self):
        return self.copy_abs()

    def __neg__(self):
        return self.copy_negate()

    def __pos__(self):
        return self

    def __eq__(self, other):
        other = _convert_for_arith(other)
        if other is None:
            return NotImplemented
        if self.is_nan() or other.is_nan():
            return False
        if self.is_zero() and other.is_zero():
            return True
        if self.is_infinite() or other.is_infinite():
            return _infinity_rank(self) == _infinity_rank(other)
        lhs = two_sum(self.hi, self.lo)
        rhs = two_sum(other.hi, other.lo)
        return lhs.hi == rhs.hi and lhs.lo == rhs.lo

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __lt__(self, other):
        if _convert_for_arith(other) is None:
            return NotImplemented
        return self.compare(other) == Compare.LESS_THAN

    def __le__(self, other):
        if _convert_for_arith(other) is None:
            return NotImplemented
        return self.compare(other) != Compare.GREATER_THAN

    def __ge__(self, other):
        if _convert_for_arith(other) is None:
            return NotImplemented
        return self.compare(other) != Compare.LESS_THAN

    def __gt__(self, other):
        if _convert_for_arith(other) is None:
            return NotImplemented
        return self.compare(other) == Compare.GREATER_THAN

    def __bool__(self):
        return not self.is_zero()

    def __float__(self):
        return self.to_float()

    def __int__(self):
        return int(self.to_float())

    def __trunc__(self):
        return int(self.to_float())

    def __floor__(self):
        return floor(self.to_float())

    def __ceil__(self):
        return -floor(-self.to_float())

    def __round__(self, ndigits=None):
        return round(self.to_float(), ndigits)

    def __add__(self, other):
        other = _convert_for_arith(other)
        if other is None:
            return NotImplemented
        return add(self, other)

    def __sub__(self, other):
        other = _convert_for_arith(other)
        if other is None:
            return NotImplemented
        return subtract(self, other)

    def __mul__(self, other):
        other = _convert_for_arith(other)
        if other is None:
            return NotImplemented
        return multiply(self, other)

    def __truediv__(self, other):
        other = _convert_for_arith(other)
        if other is None:
            return NotImplemented
        return divide(self, other)

    def __radd__(self, other):
        return self.__add__(other)

    def __rsub__(self, other):
        other = _convert_for_arith(other)
        if other is None:
            return NotImplemented
        return subtract(other, self)

    def __rmul__(self, other):
        return self.__mul__(other)

    def __rtruediv__(self, other):
        other = _convert_for_arith(other)
        if other is None:
            return NotImplemented
        return divide(other, self)

    def __hash__(self):
        '''Python hash.  Must hash equally to other types with the same value.'''
        if self.is_nan():
            return 0
        if self.is_infinite():
            return hash(self.hi)
        return hash(Fraction(*self.as_integer_ratio()))


def make_nan():
    return NAN


def make_zero(sign):
    '''Return a zero, negative if sign is True.'''
    return NEGATIVE_ZERO if sign else ZERO


def make_infinity(sign):
    '''Return an infinity, negative if sign is True.'''
    return NEGATIVE_INFINITY if sign else INFINITY


#
# Arithmetic
#

def add(lhs, rhs, context=None):
    '''Return the sum LHS + RHS.'''
    return _add_sub((OP_ADD, lhs, rhs), lhs, rhs, False, context)


def subtract(lhs, rhs, context=None):
    '''Return the difference LHS - RHS.'''
    return _add_sub((OP_SUBTRACT, lhs, rhs), lhs, rhs, True, context)


def _add_sub(op_tuple, lhs, rhs, is_subtract, context):
    if lhs.is_nan() or rhs.is_nan():
        return NAN

    # Handle either being infinite
    if lhs.is_infinite() or rhs.is_infinite():
        rhs_sign = rhs.is_negative() ^ is_subtract
        if not rhs.is_infinite():
            return make_infinity(lhs.is_negative())
        if not lhs.is_infinite():
            return make_infinity(rhs_sign)
        if lhs.is_negative() != rhs_sign:
            # Effective addition of differently-signed infinities is an invalid op
            return InvalidAdd(op_tuple).signal(context)
        return make_infinity(rhs_sign)

    # Zero sums have the sign IEEE-754 gives them: negative only for two negative zeroes
    if lhs.is_zero() and rhs.is_zero():
        return make_zero(lhs.is_negative() and (rhs.is_negative() ^ is_subtract))

    if is_subtract:
        t0 = two_diff(lhs.hi, rhs.hi)
        d = two_diff(lhs.lo, rhs.lo)
    else:
        t0 = two_sum(lhs.hi, rhs.hi)
        d = two_sum(lhs.lo, rhs.lo)
    t1 = two_sum(t0.lo, d.hi)
    t2 = d.lo + t1.lo
    result = normalize_three(t0.hi, t1.hi, t2)
    # Exact cancellation gives +0
    if result.is_zero():
        return ZERO
    return _check_overflow(result, t0.hi, op_tuple, context)


def multiply(lhs, rhs, context=None):
    '''Returns the product of LHS and RHS.'''
    op_tuple = (OP_MULTIPLY, lhs, rhs)

    if lhs.is_nan() or rhs.is_nan():
        return NAN

    if lhs.is_infinite() or rhs.is_infinite():
        # infinity * zero -> invalid op
        if lhs.is_zero() or rhs.is_zero():
            return InvalidMultiply(op_tuple).signal(context)
        return make_infinity(lhs.is_negative() ^ rhs.is_negative())

    result = _multiply_finite(lhs, rhs, op_tuple, context)
    if result.is_zero():
        return make_zero(lhs.is_negative() ^ rhs.is_negative())
    return result


def _multiply_finite(lhs, rhs, op_tuple, context):
    '''Returns the product of two finite DoubleDoubles.'''
    product = two_product(lhs.hi, rhs.hi)
    cross_a = two_product(lhs.hi, rhs.lo)
    cross_b = two_product(lhs.lo, rhs.hi)
    # Below representable precision; its rounding error is not tracked
    lo_product = lhs.lo * rhs.lo

    t1 = two_sum(product.lo, cross_a.hi, cross_b.hi)
    t2 = cross_a.lo + cross_b.lo + lo_product + t1.lo
    return _check_overflow(normalize_three(product.hi, t1.hi, t2), product.hi,
                           op_tuple, context)


def divide(lhs, rhs, context=None):
    '''Return lhs / rhs.'''
    op_tuple = (OP_DIVIDE, lhs, rhs)

    if lhs.is_nan() or rhs.is_nan():
        return NAN

    sign = lhs.is_negative() ^ rhs.is_negative()
    if lhs.is_infinite():
        # infinity / infinity is an invalid op
        if rhs.is_infinite():
            return InvalidDivide(op_tuple).signal(context)
        # infinity / finite -> infinity
        return make_infinity(sign)

    # finite / infinity -> zero
    if rhs.is_infinite():
        return make_zero(sign)

    if rhs.is_zero():
        return DivisionByZero(op_tuple, make_infinity(sign)).signal(context)

    result = _divide_finite(lhs, rhs, op_tuple, context)
    if result.is_zero():
        return make_zero(sign)
    return result


def _divide_finite(lhs, rhs, op_tuple, context):
    '''Calculate LHS / RHS, where both are finite and RHS is non-zero.

    The float quotient of the high components is a good first approximation.  A single
    Newton-style step computes the remainder of that approximation exactly and divides it
    to obtain the correction.'''
    q0 = lhs.hi / rhs.hi
    if not isfinite(q0):
        return Overflow(op_tuple, make_infinity(copysign(1.0, q0) < 0)).signal(context)

    approx = _multiply_finite(rhs, _pair(q0, 0.0), op_tuple, context)
    residual = two_diff(lhs.hi, approx.hi)
    err = residual.lo
    err -= approx.lo
    err += lhs.lo
    q1 = (residual.hi + err) / rhs.hi

    # |q1| is of the order of an ulp of q0
    return normalize_two(q0, q1)


def _check_overflow(result, leading, op_tuple, context):
    '''Return result, or signal overflow if arithmetic on finite operands went out of range.
    leading is the rounded float approximation computed first; it carries the sign.'''
    if isfinite(result.hi):
        return result
    return Overflow(op_tuple, make_infinity(copysign(1.0, leading) < 0)).signal(context)


def int_power(value, exponent, context=None):
    '''Raise value to an integral power by binary exponentiation.

    A non-integral exponent is floored first.  A negative exponent gives the reciprocal of
    the positive power.'''
    value = from_value(value, context)
    exponent = floor(exponent)
    take_reciprocal = exponent < 0
    exponent = abs(exponent)

    result = ONE
    pow2 = value
    while exponent:
        if exponent & 1:
            result = multiply(result, pow2, context)
        exponent >>= 1
        if exponent:
            pow2 = multiply(pow2, pow2, context)

    return result.reciprocal(context) if take_reciprocal else result


#
# Conversions
#

def from_int(value, context=None):
    '''Return the DoubleDouble nearest the integer value.'''
    try:
        hi = float(value)
    except OverflowError:
        return Overflow((OP_FROM_INT, value), make_infinity(value < 0)).signal(context)
    return _pair(hi, float(value - int(hi)))


def from_float(value):
    '''Return a float as a DoubleDouble, which is exact.'''
    return DoubleDouble(value)


def from_fraction(value, context=None):
    '''Return the DoubleDouble nearest the rational value: the correctly-rounded float and
    the correctly-rounded remainder.'''
    value = Fraction(value)
    try:
        hi = float(value)
    except OverflowError:
        return Overflow((OP_FROM_FRACTION, value), make_infinity(value < 0)).signal(context)
    if hi == 0.0:
        # An underflowed remainder cannot be recovered
        return make_zero(value < 0)
    return _pair(hi, float(value - Fraction(hi)))


def from_decimal(value, context=None):
    '''Return the DoubleDouble nearest the Decimal value.'''
    if value.is_nan():
        return NAN
    if value.is_infinite():
        return make_infinity(value.is_signed())
    if value.is_zero():
        return make_zero(value.is_signed())
    return from_fraction(Fraction(value), context)


def from_value(value, context=None):
    '''Return a DoubleDouble for an int, float, Fraction, Decimal, str or DoubleDouble.'''
    if isinstance(value, DoubleDouble):
        return value
    if isinstance(value, float):
        return from_float(value)
    if isinstance(value, int):
        return from_int(value, context)
    if isinstance(value, Fraction):
        return from_fraction(value, context)
    if isinstance(value, Decimal):
        return from_decimal(value, context)
    if isinstance(value, str):
        return from_string(value, context=context)
    raise TypeError(f'cannot convert {type(value).__name__} to a DoubleDouble')


def _convert_for_arith(value):
    '''Return value as a DoubleDouble if it is a DoubleDouble, int or float, otherwise
    None.'''
    if isinstance(value, DoubleDouble):
        return value
    if isinstance(value, float):
        return DoubleDouble(value)
    if isinstance(value, int):
        return from_int(value)
    return None


def _infinity_rank(value):
    if not value.is_infinite():
        return 0
    return -1 if value.is_negative() else 1


#
# Decimal literal parsing
#

def parse(text, on_error=None, context=None):
    '''Parse text as a DoubleDouble literal: an optional sign, a decimal significand with an
    optional point and an optional exponent, or an infinity or NaN.  Leading and trailing
    whitespace is ignored.

    If the text is not a valid literal and on_error is given, on_error(text) is returned.
    Otherwise FormatError is signalled; the default context raises it.
    '''
    text = text.strip()
    match = DD_LITERAL_REGEX.match(text)
    if match is None:
        if on_error is not None:
            return on_error(text)
        return FormatError((OP_FROM_STRING, text)).signal(context)

    sign = text[0] == '-'
    if match.group('nan') is not None:
        return NAN
    if match.group('inf') is not None:
        return make_infinity(sign)

    # If a fraction was specified, the integer and fraction parts are in the int_frac
    # and frac groups, otherwise the integer is in the int group.
    exp_str = match.group('exp')
    if match.group('frac') is None:
        int_str, frac_str = match.group('int'), ''
    else:
        int_str, frac_str = match.group('int_frac'), match.group('frac')

    # Combine the integer and fraction digits into sig_str, dropping insignificant
    # trailing zeroes of the fraction.  Viewing that as an integer, the net exponent is
    # the written exponent less the fraction digits kept.
    sig_str = int_str + frac_str.rstrip('0')
    exponent = _written_exponent(exp_str) - (len(sig_str) - len(int_str))
    sig_str = sig_str.lstrip('0')

    # Exponent doesn't matter if zero
    if not sig_str:
        return make_zero(sign)

    # Horner's rule keeps the integer significand exact while it fits in 106 bits
    result = ZERO
    for digit in sig_str:
        result = add(multiply(result, TEN, context), _DIGITS[digit], context)

    if exponent >= 0:
        result = multiply(result, int_power(TEN, exponent, context), context)
    else:
        # Scale the running value one tabulated power at a time.  A combined multiplier
        # would itself underflow for exponents the result can still represent.
        while exponent < -_MAX_TABLE_POWER and not result.is_zero():
            result = multiply(result, _NEG_POWERS_OF_TEN[_MAX_TABLE_POWER], context)
            exponent += _MAX_TABLE_POWER
        result = multiply(result, _NEG_POWERS_OF_TEN[min(-exponent, _MAX_TABLE_POWER)],
                          context)

    return result.copy_negate() if sign else result


def _written_exponent(exp_str):
    '''Return the exponent written in a literal, or 0 if there is none.  Exponents too long
    to matter are clamped, which also keeps int() within its digit limit.'''
    if not exp_str:
        return 0
    digits = exp_str.lstrip('+-').lstrip('0')
    if len(digits) > _MAX_EXPONENT_DIGITS:
        magnitude = 10 ** _MAX_EXPONENT_DIGITS
    else:
        magnitude = int(digits or '0')
    return -magnitude if exp_str[0] == '-' else magnitude


def from_string(text, on_error=None, context=None):
    '''Synonym of parse().'''
    return parse(text, on_error, context)


#
# Exported functions
#

DefaultContext = Context()
DefaultContext.set_handler(FormatError, HandlerKind.RAISE)
tls = threading.local()


def get_context():
    try:
        return tls.context
    except AttributeError:
        tls.context = DefaultContext.copy()
        return tls.context


def set_context(context):
    '''Sets the current thread's context to context (not a copy of it).'''
    tls.context = context


class LocalContext:
    '''A context manager that will set the current context for the active thread to a copy of
    context on entry to the with-statement and restore the previous context on exit.  If
    no context is specified a copy of the current context is taken instead.
    '''

    def __init__(self, context=None):
        self.saved_context = None
        self.context_to_set = context

    def __enter__(self):
        self.saved_context = get_context()
        context = (self.context_to_set or self.saved_context).copy()
        set_context(context)
        return context

    def __exit__(self, etype, value, traceback):
        set_context(self.saved_context)


local_context = LocalContext

#
# Constants
#

NAN = DoubleDouble(float('nan'))
INFINITY = DoubleDouble(float('inf'))
NEGATIVE_INFINITY = DoubleDouble(float('-inf'))
ZERO = DoubleDouble(0.0)
NEGATIVE_ZERO = DoubleDouble(-0.0, -0.0)
ONE = DoubleDouble(1.0)
TEN = DoubleDouble(10.0)

_DIGITS = {str(n): DoubleDouble(n) for n in range(10)}

# Positive powers of ten are exact as floats up to 10^22, but no negative power is.  The
# table holds the nearest DoubleDouble to each negative power down to 10^-22 so the parser
# can produce the closest value for such literals.
_MAX_TABLE_POWER = 22
# Written exponents with more significant digits than this are beyond any DoubleDouble
_MAX_EXPONENT_DIGITS = 9
_NEG_POWERS_OF_TEN = (
    ONE,
    DoubleDouble(1.0e-1, -5.551115123125783e-18),
    DoubleDouble(1.0e-2, -2.0816681711721684e-19),
    DoubleDouble(1.0e-3, -2.0816681711721686e-20),
    DoubleDouble(1.0e-4, -4.79217360238593e-21),
    DoubleDouble(1.0e-5, -8.180305391403131e-22),
    DoubleDouble(1.0e-6, 4.525188817411374e-23),
    DoubleDouble(1.0e-7, 4.525188817411374e-24),
    DoubleDouble(1.0e-8, -2.092256083012847e-25),
    DoubleDouble(1.0e-9, -6.228159145777985e-26),
    DoubleDouble(1.0e-10, -3.643219731549774e-27),
    DoubleDouble(1.0e-11, 6.050303071806019e-28),
    DoubleDouble(1.0e-12, 2.0113352370744385e-29),
    DoubleDouble(1.0e-13, -3.037374556340037e-30),
    DoubleDouble(1.0e-14, 1.1806906454401013e-32),
    DoubleDouble(1.0e-15, -7.770539987666108e-32),
    DoubleDouble(1.0e-16, 2.0902213275965398e-33),
    DoubleDouble(1.0e-17, -7.154242405462192e-34),
    DoubleDouble(1.0e-18, -7.154242405462193e-35),
    DoubleDouble(1.0e-19, 2.475407316473987e-36),
    DoubleDouble(1.0e-20, 5.484672854579043e-37),
    DoubleDouble(1.0e-21, 9.246254777210363e-38),
    DoubleDouble(1.0e-22, -4.859677432657087e-39),
)

DD_LITERAL_REGEX = re.compile(
    # sign[opt]
    '[-+]?('
    # (dec-integer[opt].fraction or dec-integer.[opt])
    '((?P<int_frac>[0-9]*)\\.(?P<frac>[0-9]+)|(?P<int>[0-9]+)\\.?)'
    # e sign[opt]dec-exponent   [opt]
    '(e(?P<exp>[-+]?[0-9]+))?|'
    # inf or infinity
    '(?P<inf>inf(inity)?)|'
    # nan
    '(?P<nan>nan))$',
    re.ASCII | re.IGNORECASE
)
