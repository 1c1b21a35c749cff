"""Bounded iterative Fibonacci computation."""

from .exceptions import OutOfRangeError

MIN_N = 1
# fib(MAX_N) fits in a signed 64-bit integer
MAX_N = 90
OUT_OF_RANGE_MESSAGE = f"n must be between {MIN_N} and {MAX_N}"


def compute_fibonacci(n: int) -> int:
    """
    Return the n-th Fibonacci number, with fib(1) = fib(2) = 1.

    Raises:
        OutOfRangeError: if n is not within [MIN_N, MAX_N]
    """
    if n < MIN_N or n > MAX_N:
        raise OutOfRangeError(n, OUT_OF_RANGE_MESSAGE)

    result = 1
    if n > 2:
        a, b = 0, 1
        for _ in range(n - 1):
            result = a + b
            a = b
            b = result
    return result
