from ddt import ddt, data, unpack
from pathlib import Path
from unittest import TestCase

from cachedproxy import util


@ddt
class TestClamp(TestCase):
    @data(
        (-1, 0, 3, 0),
        (0, 0, 3, 0),
        (1, 0, 3, 1),
        (2, 0, 3, 2),
        (3, 0, 3, 3),
        (4, 0, 3, 3),

        (0, -10, 10, 0),
        (-11, -10, 10, -10),
        (11, -10, 10, 10),
    )
    @unpack
    def test_clamp(self, value, min, max, expected):
        actual = util.clamp(value, min, max)
        self.assertEqual(expected, actual, 'The value should be clamped properly')


@ddt
class TestSplitPath(TestCase):
    @data(
        ('abcdef', 0, Path('abcdef')),
        ('abcdef', 2, Path('a', 'b', 'cdef')),
        # At least one character is always left over for the file name.
        ('abc', 5, Path('a', 'b', 'c')),
        ('abc', -1, Path('abc')),
    )
    @unpack
    def test_split_path(self, name, levels, expected):
        self.assertEqual(expected, util.split_path(name, levels))
