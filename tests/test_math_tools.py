import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms import MathTools


class MathToolsTestCase(unittest.TestCase):
    def test_constants(self) -> None:
        self.assertAlmostEqual(MathTools.EPLEY_DIVISOR, 30.0)

    def test_clamp(self) -> None:
        self.assertEqual(MathTools.clamp(5, 0, 10), 5)
        self.assertEqual(MathTools.clamp(-1, 0, 10), 0)
        self.assertEqual(MathTools.clamp(11, 0, 10), 10)
        with self.assertRaises(ValueError):
            MathTools.clamp(1, 2, 1)

    def test_round_half_up(self) -> None:
        self.assertEqual(MathTools.round_half_up(2.5), 3)
        self.assertEqual(MathTools.round_half_up(5.5), 6)
        self.assertEqual(MathTools.round_half_up(3.3), 3)
        self.assertEqual(MathTools.round_half_up(-0.5), 0)

    def test_epley_1rm(self) -> None:
        self.assertAlmostEqual(MathTools.epley_1rm(100, 5), 100 * (1 + 5 / 30))
        self.assertAlmostEqual(MathTools.epley_1rm(100, 10), 100 * (1 + 10 / 30))
        self.assertEqual(MathTools.epley_1rm(120, 1), 120.0)
        self.assertEqual(MathTools.epley_1rm(120, 0), 120.0)
        with self.assertRaises(ValueError):
            MathTools.epley_1rm(100, -1)

    def test_volume(self) -> None:
        sets = [(10, 100.0), (5, 150.0)]
        self.assertEqual(MathTools.volume(sets), 10 * 100.0 + 5 * 150.0)
        self.assertEqual(MathTools.volume([]), 0.0)

    def test_mean(self) -> None:
        self.assertAlmostEqual(MathTools.mean([1, 2, 3]), 2.0)
        self.assertEqual(MathTools.mean([]), 0.0)
        self.assertEqual(MathTools.mean([], default=7.0), 7.0)

    def test_coefficient_of_variation(self) -> None:
        self.assertEqual(MathTools.coefficient_of_variation([5]), 0.0)
        self.assertEqual(MathTools.coefficient_of_variation([0, 0, 0]), 0.0)
        self.assertAlmostEqual(MathTools.coefficient_of_variation([10, 10, 10]), 0.0)
        self.assertAlmostEqual(MathTools.coefficient_of_variation([5, 15]), 0.5)

    def test_linear_regression(self) -> None:
        slope, intercept, r2 = MathTools.linear_regression([0, 1, 2, 3], [1, 3, 5, 7])
        self.assertAlmostEqual(slope, 2.0)
        self.assertAlmostEqual(intercept, 1.0)
        self.assertAlmostEqual(r2, 1.0)
        self.assertEqual(MathTools.linear_regression([1], [1]), (0.0, 0.0, 0.0))
        slope, _, r2 = MathTools.linear_regression([2, 2, 2], [1, 5, 9])
        self.assertEqual(slope, 0.0)
        self.assertEqual(r2, 0.0)
        slope, _, r2 = MathTools.linear_regression([0, 1, 2], [4, 4, 4])
        self.assertEqual(slope, 0.0)
        self.assertEqual(r2, 0.0)

    def test_pearson_correlation(self) -> None:
        self.assertAlmostEqual(MathTools.pearson_correlation([1, 2, 3], [2, 4, 6]), 1.0)
        self.assertAlmostEqual(MathTools.pearson_correlation([1, 2, 3], [6, 4, 2]), -1.0)
        self.assertEqual(MathTools.pearson_correlation([1, 1, 1], [1, 1, 1]), 0.0)
        self.assertEqual(MathTools.pearson_correlation([1, 2], [1, 2, 3]), 0.0)
        self.assertEqual(MathTools.pearson_correlation([1], [1]), 0.0)

    def test_piecewise_linear(self) -> None:
        curve = [(0.0, 100.0), (0.3, 90.0), (0.5, 70.0)]
        self.assertEqual(MathTools.piecewise_linear(-1.0, curve), 100.0)
        self.assertAlmostEqual(MathTools.piecewise_linear(0.15, curve), 95.0)
        self.assertAlmostEqual(MathTools.piecewise_linear(0.4, curve), 80.0)
        self.assertAlmostEqual(MathTools.piecewise_linear(0.6, curve), 60.0)
        with self.assertRaises(ValueError):
            MathTools.piecewise_linear(1.0, [])


if __name__ == "__main__":
    unittest.main()
