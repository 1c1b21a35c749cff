"""Tests for the bounded Fibonacci computation."""

import pytest

from fibonacci_server.exceptions import ErrorKind, FibonacciError, OutOfRangeError
from fibonacci_server.fibonacci import MAX_N, MIN_N, OUT_OF_RANGE_MESSAGE, compute_fibonacci


class TestComputeFibonacci:
    """Known values and domain restriction."""

    @pytest.mark.parametrize(
        "n,expected",
        [
            (1, 1),
            (2, 1),
            (3, 2),
            (10, 55),
            (50, 12586269025),
            (89, 1779979416004714189),
            (90, 2880067194370816120),
        ],
    )
    def test_known_values(self, n, expected):
        assert compute_fibonacci(n) == expected

    def test_largest_result_fits_signed_64_bit(self):
        assert compute_fibonacci(MAX_N) < 2**63

    def test_deterministic(self):
        for n in range(MIN_N, MAX_N + 1):
            assert compute_fibonacci(n) == compute_fibonacci(n)

    def test_recurrence_holds_across_domain(self):
        for n in range(3, MAX_N + 1):
            assert compute_fibonacci(n) == compute_fibonacci(n - 1) + compute_fibonacci(n - 2)

    @pytest.mark.parametrize("n", [0, -1, -90, 91, 1000])
    def test_out_of_range_rejected(self, n):
        with pytest.raises(OutOfRangeError) as exc_info:
            compute_fibonacci(n)

        error = exc_info.value
        assert isinstance(error, FibonacciError)
        assert error.kind is ErrorKind.OUT_OF_RANGE
        assert error.message == "n must be between 1 and 90"
        assert str(error) == OUT_OF_RANGE_MESSAGE
        assert error.n == n

    def test_error_serializes_with_kind_code(self):
        error = OutOfRangeError(0)
        assert error.to_dict()["error"]["code"] == "out_of_range"
        assert error.to_dict()["error"]["type"] == "OutOfRangeError"
