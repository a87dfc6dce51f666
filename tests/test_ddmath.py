from decimal import Decimal
from fractions import Fraction

import pytest

from doubledouble import *
from doubledouble import ddmath


PI_DIGITS = '3.14159265358979323846264338327950288419716939937510582097494459'
E_DIGITS = '2.71828182845904523536028747135266249775724709369995957496696763'


def relative_error(value, digits):
    reference = Fraction(Decimal(digits))
    return abs((Fraction(*value.as_integer_ratio()) - reference) / reference)


class TestConstants:

    @pytest.mark.parametrize('value, digits', (
        (ddmath.PI, PI_DIGITS),
        (ddmath.E, E_DIGITS),
    ))
    def test_accuracy(self, value, digits):
        assert relative_error(value, digits) < Fraction(1, 2 ** 105)

    def test_normalized(self):
        for value in (ddmath.PI, ddmath.E):
            assert normalize_two(value.hi, value.lo) == value

    def test_parse_agrees(self):
        assert abs(parse(PI_DIGITS) - ddmath.PI) < 1e-30
        assert abs(parse(E_DIGITS) - ddmath.E) < 1e-30


class TestMinMax:

    def test_finite(self):
        one, two = DoubleDouble(1.0), DoubleDouble(2.0)
        assert ddmath.min(one, two) is one
        assert ddmath.min(two, one) is one
        assert ddmath.max(one, two) is two
        assert ddmath.max(two, one) is two

    def test_by_lo(self):
        lhs = DoubleDouble(1.0, 1e-20)
        rhs = DoubleDouble(1.0, -1e-20)
        assert ddmath.min(lhs, rhs) is rhs
        assert ddmath.max(lhs, rhs) is lhs

    def test_nan_is_greatest(self):
        assert ddmath.min(NAN, ONE) is ONE
        assert ddmath.min(ONE, NAN) is ONE
        assert ddmath.max(NAN, INFINITY) is NAN
        assert ddmath.max(INFINITY, NAN) is NAN

    def test_infinities(self):
        assert ddmath.min(NEGATIVE_INFINITY, ONE) is NEGATIVE_INFINITY
        assert ddmath.max(INFINITY, ONE) is INFINITY

    def test_scalars(self):
        assert ddmath.min(ONE, 2) is ONE
        assert ddmath.max(ONE, 0.5) is ONE


class TestFunctions:

    def test_int_power(self):
        assert ddmath.int_power is int_power
        assert ddmath.int_power(DoubleDouble(3.0), 4) == 81

    @pytest.mark.parametrize('name', ('pow', 'sqrt', 'sin', 'cos', 'tan',
                                      'sinh', 'cosh', 'tanh'))
    def test_not_implemented(self, name):
        func = getattr(ddmath, name)
        assert func.__name__ == name
        with pytest.raises(NotImplementedError) as e:
            func(ONE)
        assert name in str(e.value)

    def test_pow_not_implemented(self):
        with pytest.raises(NotImplementedError):
            ddmath.pow(DoubleDouble(2.0), DoubleDouble(0.5))
